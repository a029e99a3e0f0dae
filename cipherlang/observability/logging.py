"""Structured logging bridge for store events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cipherlang.util.logger import logger

if TYPE_CHECKING:
    from cipherlang.core.models import Mapping


def mapping_summary(mapping: "Mapping") -> dict[str, object]:
    """Loggable view of a mapping: identity and sizes, never the tokens."""
    return {
        "id": mapping.id,
        "name": mapping.name,
        "letters": len(mapping.letter_map),
        "numbers": len(mapping.number_map),
    }


def log_event(event: str, **payload: object) -> None:
    logger.info("event=%s payload=%s", event, payload)
