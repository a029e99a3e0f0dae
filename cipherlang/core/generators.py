"""'Generate for me' styles producing ready-to-use letter and digit maps.

Every style returns an injective map in which no source character maps to
itself (ignoring case).
"""

from __future__ import annotations

import random
import string
from collections.abc import Callable, Iterable, Sequence

from cipherlang.config.generation_styles import load_generation_styles
from cipherlang.config.settings import settings

ALPHABET = string.ascii_lowercase
DIGITS = string.digits
_VARIATION_SELECTOR = "\ufe0f"


def _unique(items: Iterable[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for item in items:
        item = item.replace(_VARIATION_SELECTOR, "")
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def _split(entry: str | Sequence[str]) -> list[str]:
    # a set written as one string is split per code point
    if isinstance(entry, str):
        return list(entry)
    return [str(item) for item in entry]


def _is_fixed(source: str, token: str) -> bool:
    return token.lower() == source


def _repair_fixed_points(sources: Sequence[str], tokens: list[str], rng: random.Random) -> None:
    size = len(tokens)
    for i in range(size):
        if not _is_fixed(sources[i], tokens[i]):
            continue
        for j in rng.sample(range(size), size):
            if j != i and not _is_fixed(sources[i], tokens[j]) and not _is_fixed(sources[j], tokens[i]):
                tokens[i], tokens[j] = tokens[j], tokens[i]
                break


def derange(
    sources: Sequence[str],
    pool: Sequence[str],
    *,
    rng: random.Random | None = None,
    max_attempts: int | None = None,
) -> dict[str, str]:
    """Draw one distinct token per source so that no source maps to itself.

    Shuffle, then swap away any fixed points; reshuffle if a pass leaves some.
    """
    rng = rng or random.Random()
    attempts = max_attempts or settings.derangement_max_attempts
    candidates = _unique(pool)
    if len(candidates) < len(sources):
        raise ValueError(f"pool has {len(candidates)} distinct tokens, need {len(sources)}")
    for _ in range(attempts):
        tokens = rng.sample(candidates, len(sources))
        _repair_fixed_points(sources, tokens, rng)
        if not any(_is_fixed(source, token) for source, token in zip(sources, tokens)):
            return dict(zip(sources, tokens))
    raise RuntimeError(f"no derangement found after {attempts} attempts")


def generate_shuffled_letters(rng: random.Random | None = None) -> dict[str, str]:
    return derange(ALPHABET, ALPHABET.upper(), rng=rng)


def generate_numbers(rng: random.Random | None = None) -> dict[str, str]:
    # fixed width keeps the code prefix-free, so decoding is unambiguous
    return {letter: f"{index + 1:02d}" for index, letter in enumerate(ALPHABET)}


def generate_emojis(rng: random.Random | None = None) -> dict[str, str]:
    rng = rng or random.Random()
    sets = [_split(entry) for entry in load_generation_styles()["emojis"]["sets"]]
    rng.shuffle(sets)
    # favour a single themed set, topping up from the others
    pool = _unique(item for entry in sets for item in entry)[: len(ALPHABET)]
    return derange(ALPHABET, pool, rng=rng)


def generate_symbols(rng: random.Random | None = None) -> dict[str, str]:
    pool = _split(load_generation_styles()["symbols"]["pool"])
    return derange(ALPHABET, pool, rng=rng)


def generate_mixed(rng: random.Random | None = None) -> dict[str, str]:
    mixed = load_generation_styles()["mixed"]
    pool: list[str] = []
    for key in ("letters", "numbers", "symbols", "emojis"):
        pool.extend(_split(mixed.get(key) or []))
    return derange(ALPHABET, pool, rng=rng)


def generate_shuffled_digits(rng: random.Random | None = None) -> dict[str, str]:
    return derange(DIGITS, DIGITS, rng=rng)


STYLES: dict[str, Callable[[random.Random | None], dict[str, str]]] = {
    "shuffled_letters": generate_shuffled_letters,
    "numbers": generate_numbers,
    "emojis": generate_emojis,
    "symbols": generate_symbols,
    "mixed": generate_mixed,
}


def generate(style: str, rng: random.Random | None = None) -> dict[str, str]:
    try:
        generator = STYLES[style]
    except KeyError:
        raise ValueError(f"unknown style: {style}") from None
    return generator(rng)
