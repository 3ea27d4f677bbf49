# src/tapharness/telemetry/logger/processors.py

"""
Custom structlog processors used by the tapharness logging pipeline.
"""

import logging

from structlog.typing import EventDict, WrappedLogger

LOG_EMOJIS = {
    logging.DEBUG: "🐛",
    logging.INFO: "ℹ️",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
}

# Keys used only for routing inside the pipeline.
_INTERNAL_KEYS = ("emoji_key",)


def add_emoji_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Prefixes the event text with an emoji for its level (or an explicit `emoji_key`)."""
    emoji = event_dict.get("emoji_key")
    if emoji is None:
        level = logging.getLevelName(str(event_dict.get("level", method_name)).upper())
        emoji = LOG_EMOJIS.get(level) if isinstance(level, int) else None
    event = event_dict.get("event")
    if emoji and isinstance(event, str) and not event.startswith(emoji):
        event_dict["event"] = f"{emoji} {event}"
    return event_dict


def remove_extra_keys_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Drops pipeline-internal keys before rendering."""
    for key in _INTERNAL_KEYS:
        event_dict.pop(key, None)
    return event_dict


# 🔼⚙️
