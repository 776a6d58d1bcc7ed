"""
Notification publisher.

Recipe mutations are announced on a Postgres NOTIFY channel named after the
topic, so any LISTEN-ing consumer (websocket fan-out, feeds) can react.

Publishing is fire-and-forget: nothing here waits on subscribers, and a failed
publish is logged, never raised to the request path.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

from core import db

RECIPE_UPDATES = "recipe-updates"

# pg_notify payloads are capped at 8000 bytes by default.
MAX_PAYLOAD_BYTES = 7900

logger = logging.getLogger(__name__)


def events_enabled() -> bool:
    return os.environ.get("EVENTS_ENABLED", "1").strip() not in {"0", "false", "False"}


def _message(key: str, payload: dict[str, Any]) -> str:
    return json.dumps(
        {
            "key": key,
            "payload": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        ensure_ascii=True,
        default=str,
    )


async def publish(topic: str, key: str, payload: dict[str, Any]) -> bool:
    """
    Publish one message. Returns True when the notify statement ran.
    """
    if not events_enabled():
        return False

    message = _message(key, payload)
    if len(message.encode("utf-8")) > MAX_PAYLOAD_BYTES:
        logger.warning("event_payload_too_large topic=%s key=%s bytes=%s", topic, key, len(message))
        message = _message(key, {"truncated": True})

    try:
        await db.execute("SELECT pg_notify($1, $2)", topic, message)
    except Exception as exc:
        logger.warning("event_publish_failed topic=%s key=%s error=%s", topic, key, exc)
        return False

    logger.debug("event_published topic=%s key=%s", topic, key)
    return True
