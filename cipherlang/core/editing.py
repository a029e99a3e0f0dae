"""Edit-time validation for cipher languages.

Every helper returns an edited copy and leaves the input mapping untouched,
so a rejected edit never changes state.
"""

from __future__ import annotations

from collections.abc import Mapping as MappingABC

from cipherlang.core.errors import DuplicateTokenError, MappingValidationError
from cipherlang.core.models import Mapping

DIGITS = "0123456789"


def _check_letter(letter: str) -> str:
    folded = letter.lower()
    if len(folded) != 1 or not folded.isalpha():
        raise MappingValidationError(f"not a letter: {letter!r}")
    return folded


def _check_digit(digit: str) -> str:
    if len(digit) != 1 or digit not in DIGITS:
        raise MappingValidationError(f"not a digit: {digit!r}")
    return digit


def _sources(letter_map: dict[str, str], number_map: dict[str, str], include_numbers: bool):
    yield from letter_map.items()
    if include_numbers:
        yield from number_map.items()


def _find_in(
    letter_map: dict[str, str],
    number_map: dict[str, str],
    source: str,
    token: str,
    include_numbers: bool,
) -> str | None:
    wanted = token.lower()
    for other, existing in _sources(letter_map, number_map, include_numbers):
        if other != source and existing.lower() == wanted:
            return other
    return None


def find_duplicate_token(mapping: Mapping, source: str, token: str, *, include_numbers: bool = True) -> str | None:
    """Return the other source character already using ``token``, ignoring case."""
    return _find_in(mapping.letter_map, mapping.number_map, source, token, include_numbers)


def validate_mapping(mapping: Mapping, *, include_numbers: bool = True) -> list[tuple[str, str]]:
    """List every pair of source characters sharing a token, in map order."""
    seen: dict[str, str] = {}
    duplicates: list[tuple[str, str]] = []
    for source, token in _sources(mapping.letter_map, mapping.number_map, include_numbers):
        folded = token.lower()
        if folded in seen:
            duplicates.append((seen[folded], source))
        else:
            seen[folded] = source
    return duplicates


def _set_entry(
    letter_map: dict[str, str],
    number_map: dict[str, str],
    target: dict[str, str],
    source: str,
    token: str,
    include_numbers: bool,
) -> None:
    if not token:
        target.pop(source, None)
        return
    existing = _find_in(letter_map, number_map, source, token, include_numbers)
    if existing is not None:
        raise DuplicateTokenError(source, token, existing)
    target[source] = token


def set_letter(mapping: Mapping, letter: str, token: str, *, include_numbers: bool = True) -> Mapping:
    letter = _check_letter(letter)
    letters = dict(mapping.letter_map)
    _set_entry(letters, mapping.number_map, letters, letter, token, include_numbers)
    return mapping.model_copy(update={"letter_map": letters})


def set_number(mapping: Mapping, digit: str, token: str) -> Mapping:
    digit = _check_digit(digit)
    numbers = dict(mapping.number_map)
    _set_entry(mapping.letter_map, numbers, numbers, digit, token, True)
    return mapping.model_copy(update={"number_map": numbers})


def apply_edits(
    mapping: Mapping,
    *,
    name: str | None = None,
    letters: MappingABC[str, str] | None = None,
    numbers: MappingABC[str, str] | None = None,
    include_numbers: bool = True,
) -> Mapping:
    """Apply a batch of edits atomically.

    ``letters``/``numbers`` replace the whole table when given; an empty
    token drops its entry. The batch is rejected as a whole on the first
    duplicate.
    """
    if letters is not None and any(not isinstance(token, str) for token in letters.values()):
        raise MappingValidationError("letter tokens must be strings")
    if numbers is not None and any(not isinstance(token, str) for token in numbers.values()):
        raise MappingValidationError("number tokens must be strings")
    update: dict[str, object] = {}
    if name is not None:
        name = name.strip()
        if not name:
            raise MappingValidationError("name must not be empty")
        update["name"] = name

    new_letters = dict(mapping.letter_map)
    if letters is not None:
        new_letters = {_check_letter(letter): token for letter, token in letters.items() if token}
    new_numbers = dict(mapping.number_map)
    if numbers is not None:
        new_numbers = {_check_digit(digit): token for digit, token in numbers.items() if token}

    edited = mapping.model_copy(update={**update, "letter_map": new_letters, "number_map": new_numbers})
    duplicates = validate_mapping(edited, include_numbers=include_numbers)
    if duplicates:
        first, second = duplicates[0]
        token = new_letters[second] if second in new_letters else new_numbers[second]
        raise DuplicateTokenError(second, token, first)
    return edited
