import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


def _reset_singletons():
    from src.renderme.api import deps
    from src.renderme.infrastructure import chat_store, doc_store, events
    from src.renderme.services import telemetry_sink

    deps.reset_dependencies()
    chat_store.set_chat_store(None)
    doc_store.reset_document_store()
    events.reset_publisher()
    telemetry_sink.clear_events()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Run every test against the scripted model client and fresh in-memory stores."""
    monkeypatch.setenv("RENDERME_ENV", "test")
    for key in ("RENDERME_PUBLIC_MODE", "REDIS_URL", "RENDERME_CHAT_STORE_IMPL", "RENDERME_QUOTA_DISABLED"):
        monkeypatch.delenv(key, raising=False)
    _reset_singletons()
    yield
    _reset_singletons()
