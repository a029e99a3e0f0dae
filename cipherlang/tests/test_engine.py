import random

from cipherlang.core.engine import build_reverse_index, decode, encode
from cipherlang.core.generators import generate_numbers, generate_shuffled_letters
from cipherlang.core.models import Mapping


def _lang(letters=None, numbers=None) -> Mapping:
    return Mapping(name="test", letter_map=letters or {}, number_map=numbers or {})


def test_encode_preserves_case_of_source_character():
    lang = _lang({"h": "x", "e": "y", "l": "z", "o": "w"})
    assert encode("Hello", lang, False) == "Xyzzw"


def test_encode_passes_through_unmapped_characters():
    lang = _lang({"h": "x", "e": "y"})
    assert encode("123 ,.!? abc", lang, False) == "123 ,.!? abc"


def test_empty_mapping_is_identity_both_ways():
    lang = _lang()
    text = "Hello, World 42! ünïcødé 😀"
    assert encode(text, lang, True) == text
    assert decode(text, lang, True) == text


def test_encode_cases_whole_multi_character_token():
    lang = _lang({"a": "Ab", "b": "cD"})
    assert encode("aAbB", lang, False) == "abABcdCD"


def test_decode_prefers_longest_match():
    lang = _lang({"a": "XY", "b": "X"})
    assert decode("xy", lang, False) == "a"
    assert decode("XY", lang, False) == "A"
    assert decode("xyx", lang, False) == "ab"
    assert decode("XYX", lang, False) == "AB"


def test_decode_window_follows_longest_token():
    lang = _lang({"a": "four"})
    assert decode("four four", lang, False) == "a a"


def test_decode_window_can_be_capped():
    lang = _lang({"a": "four"})
    assert decode("four", lang, False, max_window=3) == "four"


def test_round_trip_with_single_letter_substitution():
    lang = _lang(generate_shuffled_letters(random.Random(7)))
    text = "The Quick Brown Fox Jumps Over The Lazy Dog"
    assert decode(encode(text, lang, False), lang, False) == text


def test_round_trip_with_fixed_width_number_tokens():
    lang = _lang(generate_numbers())
    text = "meet me at noon"
    encoded = encode(text, lang, False)
    assert encoded.startswith("13050520")
    assert decode(encoded, lang, False) == text


def test_number_mapping_requires_full_features():
    lang = _lang({"a": "b"}, {"1": "!", "2": "@"})
    assert encode("a12", lang, True) == "b!@"
    assert encode("a12", lang, False) == "b12"
    assert encode("a12", lang, False, full_features=True) == "b!@"
    assert decode("b!@", lang, True) == "a12"
    assert decode("b!@", lang, False) == "a!@"


def test_unmapped_digit_passes_through_with_number_mapping():
    lang = _lang(numbers={"1": "#"})
    assert encode("123", lang, True) == "#23"


def test_number_tokens_are_matched_before_letter_tokens():
    lang = _lang({"z": "q"}, {"1": "q"})
    assert decode("q", lang, True) == "1"
    assert decode("q", lang, False) == "z"


def test_number_tokens_match_verbatim_only():
    lang = _lang(numbers={"7": "ab"})
    assert decode("ab", lang, True) == "7"
    assert decode("AB", lang, True) == "AB"


def test_token_collision_keeps_first_registered_letter():
    # imported languages can carry case-insensitive duplicates
    lang = Mapping.from_record({"id": "X1", "name": "clash", "mapping": {"a": "x", "b": "X"}, "createdDate": 0})
    index = build_reverse_index(lang, include_numbers=False)
    assert index.letters == {"x": "a", "X": "a"}
    assert decode("xX", lang, False) == "aA"


def test_uncased_tokens_decode_to_lower_case():
    lang = _lang({"a": "😀", "b": "★"})
    encoded = encode("AbBa", lang, False)
    assert encoded == "😀★★😀"
    assert decode(encoded, lang, False) == "abba"


def test_mixed_case_match_decodes_to_lower_case():
    lang = _lang({"a": "xy"})
    assert decode("Xy", lang, False) == "a"


def test_engine_does_not_mutate_mapping():
    lang = _lang({"a": "x"}, {"1": "9"})
    before = lang.model_dump()
    encode("Aa1", lang, True)
    decode("Xx9", lang, True)
    assert lang.model_dump() == before


def test_characters_with_multi_char_lowercase_pass_through():
    lang = _lang({"i": "1"})
    assert encode("İ", lang, False) == "İ"
