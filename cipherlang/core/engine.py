"""Stateless substitution engine: encode and longest-match decode.

Neither function mutates the mapping or keeps state between calls. The
reverse index used by ``decode`` is rebuilt on every call.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cipherlang.core.models import Mapping


@dataclass(slots=True)
class ReverseIndex:
    letters: dict[str, str] = field(default_factory=dict)
    numbers: dict[str, str] = field(default_factory=dict)

    @property
    def longest(self) -> int:
        lengths = [len(token) for token in self.letters] + [len(token) for token in self.numbers]
        return max(lengths, default=0)


def _numbers_active(mapping: Mapping, is_premium: bool, full_features: bool | None) -> bool:
    allowed = is_premium if full_features is None else full_features
    return allowed and mapping.has_number_mapping


def _is_upper_token(text: str) -> bool:
    return text != text.lower() and text == text.upper()


def build_reverse_index(mapping: Mapping, *, include_numbers: bool) -> ReverseIndex:
    """Token -> source character lookup.

    On collisions the first registered source keeps the token: letters in
    map order, each registering its lower-case form before its upper-case one.
    """
    index = ReverseIndex()
    for letter, token in mapping.letter_map.items():
        index.letters.setdefault(token.lower(), letter)
        index.letters.setdefault(token.upper(), letter)
    if include_numbers:
        for digit, token in mapping.number_map.items():
            index.numbers.setdefault(token, digit)
    return index


def encode(text: str, mapping: Mapping, is_premium: bool, *, full_features: bool | None = None) -> str:
    use_numbers = _numbers_active(mapping, is_premium, full_features)
    pieces: list[str] = []
    for char in text:
        if use_numbers and char in mapping.number_map:
            pieces.append(mapping.number_map[char])
            continue
        token = mapping.letter_map.get(char.lower())
        if token is None:
            pieces.append(char)
        elif char.isupper():
            pieces.append(token.upper())
        else:
            pieces.append(token.lower())
    return "".join(pieces)


def _match(candidate: str, index: ReverseIndex) -> str | None:
    digit = index.numbers.get(candidate)
    if digit is not None:
        return digit
    letter = index.letters.get(candidate)
    if letter is None:
        letter = index.letters.get(candidate.lower())
    if letter is None:
        return None
    return letter.upper() if _is_upper_token(candidate) else letter


def decode(
    text: str,
    mapping: Mapping,
    is_premium: bool,
    *,
    full_features: bool | None = None,
    max_window: int | None = None,
) -> str:
    """Greedy left-to-right decode, longest candidate first at each position.

    The window is the longest registered token, optionally capped by
    ``max_window``. Unmatched characters pass through one at a time.
    """
    index = build_reverse_index(mapping, include_numbers=_numbers_active(mapping, is_premium, full_features))
    window = index.longest
    if max_window:
        window = min(window, max_window)

    pieces: list[str] = []
    cursor = 0
    size = len(text)
    while cursor < size:
        for length in range(min(window, size - cursor), 0, -1):
            source = _match(text[cursor : cursor + length], index)
            if source is not None:
                pieces.append(source)
                cursor += length
                break
        else:
            pieces.append(text[cursor])
            cursor += 1
    return "".join(pieces)
