"""Generation style pools with an optional YAML override and mtime-based cache."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from threading import Lock
from typing import Any

import yaml

from cipherlang.config.settings import settings
from cipherlang.util.logger import logger


_DEFAULT_STYLES: dict[str, Any] = {
    "emojis": {
        "sets": [
            "😀😃😄😁😆😅😂🤣😊😇",
            "🐶🐱🐭🐹🐰🦊🐻🐼🐨🐯",
            "🍎🍊🍋🍌🍉🍇🍓🍈🍒🍑",
            "⚽🏀🏈⚾🎾🏐🏉🎱🏓🏸",
            "🌟⭐✨💫⚡🔥💥💢💨💤",
        ],
    },
    "symbols": {
        "pool": [
            "★", "♦", "♠", "♥", "♣", "◆", "◇", "◈", "○", "●", "◯", "◉", "△",
            "▲", "▽", "▼", "□", "■", "◦", "‣", "⁂", "※", "‼", "⁇", "⁈", "⁉",
        ],
    },
    "mixed": {
        "letters": "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
        "numbers": "1234567890",
        "symbols": ["★", "♦", "♠", "♥", "◆", "●", "▲", "■"],
        "emojis": ["😊", "🔥", "⭐", "💎", "🎯", "🚀"],
    },
}

_CACHE_LOCK = Lock()
_CACHE_PATH: str | None = None
_CACHE_MTIME_NS: int | None = None
_CACHE_STYLES: dict[str, Any] | None = None


def _resolve_styles_file(path: str) -> Path:
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return Path.cwd() / candidate


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_generation_styles(path: str | None = None) -> dict[str, Any]:
    global _CACHE_PATH, _CACHE_MTIME_NS, _CACHE_STYLES

    styles_path = _resolve_styles_file(path or settings.generation_styles_path)
    path_key = str(styles_path.resolve())
    mtime_ns = styles_path.stat().st_mtime_ns if styles_path.exists() else -1

    with _CACHE_LOCK:
        if _CACHE_STYLES is not None and _CACHE_PATH == path_key and _CACHE_MTIME_NS == mtime_ns:
            return deepcopy(_CACHE_STYLES)

        styles = deepcopy(_DEFAULT_STYLES)
        if styles_path.exists():
            raw = yaml.safe_load(styles_path.read_text(encoding="utf-8")) or {}
            if not isinstance(raw, dict):
                raise ValueError(f"generation styles file must be a mapping: {styles_path}")
            styles = _deep_merge(styles, raw)
            logger.info("generation styles loaded path=%s", styles_path)
        else:
            logger.debug("generation styles file not found, using defaults path=%s", styles_path)

        _CACHE_PATH = path_key
        _CACHE_MTIME_NS = mtime_ns
        _CACHE_STYLES = styles
        return deepcopy(styles)
