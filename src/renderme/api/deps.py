"""Process-wide collaborators shared by the routers.

Built lazily from :class:`AppConfig` on first use; tests swap them through
``app.dependency_overrides`` or :func:`reset_dependencies`.
"""

from __future__ import annotations

from typing import Optional

from ..config import AppConfig
from ..infrastructure.chat_store import ChatStore, get_chat_store
from ..services.chat_pipeline import ChatPipeline
from ..services.llm import ModelClient, get_model_client
from ..services.model_router import ModelRouter

_config: Optional[AppConfig] = None
_client: Optional[ModelClient] = None
_pipeline: Optional[ChatPipeline] = None


def get_config() -> AppConfig:
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def get_client() -> ModelClient:
    global _client
    if _client is None:
        _client = get_model_client(get_config())
    return _client


def get_store() -> ChatStore:
    return get_chat_store(get_config().chat_store_impl)


def get_router() -> ModelRouter:
    config = get_config()
    return ModelRouter(env=config.env or None, default_model_id=config.default_chat_model)


def get_pipeline() -> ChatPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = ChatPipeline(get_config(), get_client(), get_store())
    return _pipeline


def reset_dependencies() -> None:
    global _config, _client, _pipeline
    _config = None
    _client = None
    _pipeline = None
