import base64
import json
import threading

import pytest

from cipherlang.core import store as store_module
from cipherlang.core.errors import DuplicateTokenError, MappingNotFoundError, StorageError
from cipherlang.core.models import Mapping
from cipherlang.core.store import IMPORT_MALFORMED, IMPORT_NAME_EXISTS, MappingStore
from cipherlang.storage.kv import KVStore
from cipherlang.storage.sqlite_store import SqliteKVStore


class FailingKVStore(KVStore):
    def __init__(self, payload: str | None = None) -> None:
        self.payload = payload
        self.writes = 0

    def get(self, key: str) -> str | None:
        if self.payload is None:
            raise StorageError("backend down")
        return self.payload

    def set(self, key: str, payload: str) -> None:
        self.writes += 1
        raise StorageError("backend down")

    def delete(self, key: str) -> None:
        raise StorageError("backend down")


@pytest.fixture
def backend(tmp_path):
    return SqliteKVStore(db_path=str(tmp_path / "store.db"))


def _store_with(backend, *mappings: Mapping) -> MappingStore:
    store = MappingStore(backend)
    first = store.mappings[0]
    store.delete(first)
    for mapping in mappings:
        store.add(mapping)
    return store


def test_empty_backend_creates_selected_default_language(backend):
    store = MappingStore(backend)
    langs = store.mappings
    assert len(langs) == 1
    assert langs[0].name == "My First Language"
    assert langs[0].letter_map == {}
    assert store.selected.id == langs[0].id

    reloaded = MappingStore(backend)
    assert [m.id for m in reloaded.mappings] == [langs[0].id]


def test_add_appends_persists_and_does_not_select(backend):
    store = MappingStore(backend)
    default_id = store.selected.id
    extra = Mapping(name="Extra", letter_map={"a": "z"})
    store.add(extra)

    assert [m.name for m in store.mappings] == ["My First Language", "Extra"]
    assert store.selected.id == default_id
    assert [m.id for m in MappingStore(backend).mappings] == [default_id, extra.id]


def test_update_replaces_by_id_and_refreshes_selection(backend):
    store = MappingStore(backend)
    current = store.selected
    changed = current.model_copy(update={"name": "Renamed", "letter_map": {"a": "b"}})
    store.update(changed)

    assert len(store.mappings) == 1
    assert store.selected.name == "Renamed"
    assert store.selected.created_at == current.created_at
    assert MappingStore(backend).mappings[0].letter_map == {"a": "b"}


def test_update_unknown_id_raises_without_creating(backend):
    store = MappingStore(backend)
    with pytest.raises(MappingNotFoundError):
        store.update(Mapping(name="ghost"))
    assert len(store.mappings) == 1


def test_delete_selected_falls_back_to_new_first(backend):
    store = MappingStore(backend)
    first = store.selected
    second = Mapping(name="Second")
    store.add(second)

    assert store.delete(first) is True
    assert store.selected.id == second.id
    assert store.delete(second) is True
    assert store.selected is None
    assert store.mappings == []
    assert store.delete(second) is False


def test_access_rules_for_free_and_premium_users(backend):
    first = Mapping(name="First", letter_map={"a": "b"})
    second = Mapping(name="Second", letter_map={"a": "c"}, number_map={"1": "!"})
    third = Mapping(name="Third", letter_map={"a": "d"})
    store = _store_with(backend, first, second, third)

    assert [m.name for m in store.list_accessible(False)] == ["First", "Third"]
    assert [m.name for m in store.list_accessible(True)] == ["First", "Second", "Third"]
    assert store.is_accessible(first, False) is True
    assert store.is_accessible(second, False) is False
    assert store.is_accessible(second, True) is True
    assert store.can_use_full_features(first, False) is True
    assert store.can_use_full_features(third, False) is False
    assert store.can_use_full_features(third, True) is True


def test_first_language_keeps_number_mapping_for_free_users(backend):
    first = Mapping(name="First", letter_map={"a": "b"}, number_map={"1": "!"})
    second = Mapping(name="Second", letter_map={"a": "b"}, number_map={"1": "!"})
    store = _store_with(backend, first, second)

    assert store.is_accessible(first, False) is True
    assert store.encode("a1", first, False) == "b!"
    assert store.decode("b!", first, False) == "a1"
    assert store.encode("a1", second, False) == "b1"


def test_select_refuses_inaccessible_language(backend):
    first = Mapping(name="First")
    premium_only = Mapping(name="Numbers", number_map={"1": "!"})
    store = _store_with(backend, first, premium_only)

    assert store.select(premium_only.id, False) is False
    assert store.select("missing", True) is False
    assert store.select(premium_only.id, True) is True
    assert store.selected.id == premium_only.id


def test_entitlement_downgrade_resets_inaccessible_selection(backend):
    first = Mapping(name="First")
    premium_only = Mapping(name="Numbers", number_map={"1": "!"})
    plain = Mapping(name="Plain")
    store = _store_with(backend, first, premium_only, plain)

    store.on_entitlement_changed(True)
    assert store.select(premium_only.id, True)
    store.on_entitlement_changed(False)
    assert store.is_premium is False
    assert store.selected.id == first.id

    assert store.select(plain.id, False)
    store.on_entitlement_changed(False)
    assert store.selected.id == plain.id


def test_edit_rejects_duplicate_and_leaves_language_unchanged(backend):
    store = MappingStore(backend)
    lang_id = store.selected.id
    store.edit(lang_id, is_premium=False, letters={"a": "x"})
    with pytest.raises(DuplicateTokenError):
        store.edit(lang_id, is_premium=False, letters={"a": "x", "b": "X"})
    assert store.get(lang_id).letter_map == {"a": "x"}


def test_edit_checks_number_tokens_only_with_full_features(backend):
    first = Mapping(name="First", letter_map={"a": "q"})
    other = Mapping(name="Other", letter_map={"a": "q"})
    store = _store_with(backend, first, other)

    with pytest.raises(DuplicateTokenError):
        store.edit(first.id, is_premium=False, numbers={"1": "Q"})
    edited = store.edit(other.id, is_premium=False, numbers={"1": "Q"})
    assert edited.number_map == {"1": "Q"}


def test_concurrent_edits_do_not_overwrite_each_other(backend, monkeypatch):
    store = MappingStore(backend)
    lang_id = store.selected.id
    original = store_module.apply_edits
    racer = threading.Thread(target=lambda: store.edit(lang_id, is_premium=False, letters={"a": "z"}))
    racer_blocked: list[bool] = []

    def apply_while_racing(current, **kwargs):
        if not racer_blocked:
            racer.start()
            racer.join(timeout=0.2)
            racer_blocked.append(racer.is_alive())
        return original(current, **kwargs)

    monkeypatch.setattr(store_module, "apply_edits", apply_while_racing)
    store.edit(lang_id, is_premium=False, name="Renamed")
    racer.join(timeout=5)

    assert racer_blocked == [True]
    final = store.get(lang_id)
    assert final.name == "Renamed"
    assert final.letter_map == {"a": "z"}


def test_export_import_round_trip_assigns_new_id(backend):
    store = MappingStore(backend)
    source = Mapping(name="Shared", letter_map={"a": "😀", "b": "★"}, number_map={"1": "¡"})
    token = store.export_token(source)

    other = MappingStore(SqliteKVStore(db_path=str(backend.db_path.with_name("other.db"))))
    result = other.import_token(token)
    assert result.ok is True
    assert result.mapping.name == "Shared"
    assert result.mapping.letter_map == source.letter_map
    assert result.mapping.number_map == source.number_map
    assert result.mapping.id != source.id
    assert len(other.mappings) == 1


def test_import_tolerates_line_breaks_from_text_channels(backend):
    store = MappingStore(backend)
    token = store.export_token(Mapping(name="Wrapped", letter_map={"a": "b"}))
    wrapped = "\n".join(token[i : i + 20] for i in range(0, len(token), 20))
    assert store.import_token(f"  {wrapped}\n").ok is True


def test_import_rejects_existing_name(backend):
    store = MappingStore(backend)
    token = store.export_token(store.selected)
    result = store.import_token(token)
    assert result.ok is False
    assert result.reason == IMPORT_NAME_EXISTS
    assert result.mapping is None


@pytest.mark.parametrize(
    "token",
    [
        "",
        "not base64 !!",
        base64.b64encode(b"\xff\xfe").decode("ascii"),
        base64.b64encode(b"{not json").decode("ascii"),
        base64.b64encode(b"[1, 2]").decode("ascii"),
        base64.b64encode(json.dumps({"name": "", "mapping": {}}).encode("utf-8")).decode("ascii"),
    ],
)
def test_import_rejects_malformed_tokens_without_state_change(backend, token):
    store = MappingStore(backend)
    before = store.mappings
    result = store.import_token(token)
    assert result.ok is False
    assert result.reason == IMPORT_MALFORMED
    assert store.mappings == before


def test_persistence_failures_keep_in_memory_state():
    failing = FailingKVStore()
    store = MappingStore(failing)
    assert len(store.mappings) == 1
    store.add(Mapping(name="Offline"))
    assert [m.name for m in store.mappings] == ["My First Language", "Offline"]
    assert failing.writes == 2


def test_corrupt_payload_falls_back_to_default(backend):
    backend.set("SavedLanguages", "{not json")
    store = MappingStore(backend)
    assert [m.name for m in store.mappings] == ["My First Language"]


def test_invalid_records_are_skipped_on_load(backend):
    good = Mapping(name="Good", letter_map={"a": "b"})
    backend.set("SavedLanguages", json.dumps([{"name": ""}, good.to_record()]))
    store = MappingStore(backend)
    assert [m.id for m in store.mappings] == [good.id]
    assert store.selected.id == good.id


def test_returned_languages_are_copies(backend):
    store = MappingStore(backend)
    lang = store.selected
    lang.letter_map["a"] = "tampered"
    assert store.selected.letter_map == {}
