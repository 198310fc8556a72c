"""Insert-or-update persistence of the messages a generator finished.

Normal turns insert every finished message in one write. Tool-approval
continuations patch the parts of messages whose id already appears in the
turn's input history and insert the rest, so a re-surfaced assistant message
is never duplicated. Each continuation write stands alone: one failure is
logged and the remaining messages are still written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from ..domain.chat_models import ChatMessage
from ..infrastructure.chat_store import ChatStore


logger = logging.getLogger("renderme.services.reconciler")


@dataclass
class ReconcileOutcome:
    inserted: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    failed: bool = False


def reconcile_finished_messages(
    finished: Sequence[ChatMessage],
    input_messages: Sequence[ChatMessage],
    chat_id: str,
    is_tool_approval_continuation: bool,
    store: ChatStore,
) -> ReconcileOutcome:
    outcome = ReconcileOutcome()
    if not finished:
        return outcome
    if not is_tool_approval_continuation:
        try:
            store.insert_messages(chat_id, list(finished))
        except Exception:
            outcome.failed = True
            logger.exception("persist_failed", extra={"chat_id": chat_id, "continuation": False})
            return outcome
        outcome.inserted.extend(m.id for m in finished)
        return outcome

    known_ids = {m.id for m in input_messages}
    for message in finished:
        try:
            if message.id in known_ids:
                if store.update_message_parts(message.id, message.parts):
                    outcome.updated.append(message.id)
                    continue
                # replayed id that was never persisted
                logger.warning("update_target_missing", extra={"chat_id": chat_id, "message_id": message.id})
            store.insert_messages(chat_id, [message])
            outcome.inserted.append(message.id)
        except Exception:
            outcome.failed = True
            logger.exception(
                "persist_failed",
                extra={"chat_id": chat_id, "message_id": message.id, "continuation": True},
            )
    return outcome
