"""
Language store: the ordered collection of cipher languages, the selection
pointer and the free/premium access rules.

The whole collection is persisted as one JSON array under
``settings.collection_key`` after every mutation. Backend failures are
logged and the in-memory collection stays authoritative for the session.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Mapping as MappingABC

from pydantic import ValidationError

from cipherlang.config.settings import settings
from cipherlang.core import engine
from cipherlang.core.editing import apply_edits
from cipherlang.core.errors import MappingNotFoundError, MappingValidationError, StorageError
from cipherlang.core.models import ImportResult, Mapping, new_mapping_id
from cipherlang.observability.logging import log_event, mapping_summary
from cipherlang.storage.codec import decode_token, encode_token
from cipherlang.storage.kv import KVStore
from cipherlang.util.logger import logger

IMPORT_MALFORMED = "malformed"
IMPORT_NAME_EXISTS = "name_exists"


class MappingStore:
    def __init__(
        self,
        backend: KVStore,
        *,
        collection_key: str | None = None,
        default_name: str | None = None,
        is_premium: bool = False,
    ) -> None:
        self.backend = backend
        self.collection_key = collection_key or settings.collection_key
        self.default_name = default_name or settings.default_language_name
        self._lock = threading.Lock()
        self._mappings: list[Mapping] = []
        self._selected_id: str | None = None
        self._is_premium = is_premium
        self.load()

    # persistence

    def _read_records(self) -> list:
        try:
            raw = self.backend.get(self.collection_key)
        except StorageError as exc:
            logger.warning("collection load failed key=%s error=%s", self.collection_key, exc)
            return []
        if not raw:
            return []
        try:
            records = json.loads(raw)
        except ValueError as exc:
            logger.warning("collection payload unreadable key=%s error=%s", self.collection_key, exc)
            return []
        if not isinstance(records, list):
            logger.warning("collection payload is not a list key=%s", self.collection_key)
            return []
        return records

    def load(self) -> None:
        """Load the collection; synthesize the default language when empty."""
        loaded: list[Mapping] = []
        for position, record in enumerate(self._read_records()):
            try:
                loaded.append(Mapping.from_record(record))
            except ValidationError as exc:
                logger.warning("skip invalid language record position=%d errors=%d", position, exc.error_count())
        with self._lock:
            self._mappings = loaded
            self._selected_id = loaded[0].id if loaded else None
        logger.info("languages loaded key=%s count=%d", self.collection_key, len(loaded))
        if not loaded:
            self.create_default()

    def _save_holding_lock(self) -> None:
        payload = json.dumps([m.to_record() for m in self._mappings], ensure_ascii=False)
        try:
            self.backend.set(self.collection_key, payload)
        except StorageError as exc:
            logger.warning("collection save failed key=%s count=%d error=%s", self.collection_key, len(self._mappings), exc)
            return
        logger.debug("collection saved key=%s count=%d", self.collection_key, len(self._mappings))

    # lookups, all expect self._lock held

    def _index_holding_lock(self, mapping_id: str) -> int | None:
        for position, item in enumerate(self._mappings):
            if item.id == mapping_id:
                return position
        return None

    def _is_first_holding_lock(self, mapping_id: str) -> bool:
        return bool(self._mappings) and self._mappings[0].id == mapping_id

    def _is_accessible_holding_lock(self, mapping: Mapping, is_premium: bool) -> bool:
        if is_premium:
            return True
        return self._is_first_holding_lock(mapping.id) or not mapping.has_number_mapping

    def _full_features_holding_lock(self, mapping: Mapping, is_premium: bool) -> bool:
        return is_premium or self._is_first_holding_lock(mapping.id)

    # read accessors

    @property
    def mappings(self) -> list[Mapping]:
        with self._lock:
            return [m.model_copy(deep=True) for m in self._mappings]

    @property
    def selected(self) -> Mapping | None:
        with self._lock:
            if self._selected_id is None:
                return None
            position = self._index_holding_lock(self._selected_id)
            return None if position is None else self._mappings[position].model_copy(deep=True)

    @property
    def is_premium(self) -> bool:
        return self._is_premium

    def get(self, mapping_id: str) -> Mapping | None:
        with self._lock:
            position = self._index_holding_lock(mapping_id)
            return None if position is None else self._mappings[position].model_copy(deep=True)

    # CRUD

    def create_default(self) -> Mapping:
        mapping = Mapping(name=self.default_name)
        with self._lock:
            self._mappings.append(mapping)
            self._selected_id = mapping.id
            self._save_holding_lock()
        log_event("language_default_created", **mapping_summary(mapping))
        return mapping.model_copy(deep=True)

    def add(self, mapping: Mapping) -> None:
        with self._lock:
            if self._index_holding_lock(mapping.id) is not None:
                raise MappingValidationError(f"language id already present: {mapping.id}")
            self._mappings.append(mapping.model_copy(deep=True))
            self._save_holding_lock()
        log_event("language_added", **mapping_summary(mapping))

    def _replace_holding_lock(self, position: int, mapping: Mapping) -> Mapping:
        stored = mapping.model_copy(deep=True, update={"created_at": self._mappings[position].created_at})
        self._mappings[position] = stored
        if self._selected_id == stored.id and not self._is_accessible_holding_lock(stored, self._is_premium):
            self._selected_id = self._mappings[0].id
        self._save_holding_lock()
        return stored

    def update(self, mapping: Mapping) -> Mapping:
        """Replace the stored language with the same id; ``created_at`` is kept."""
        with self._lock:
            position = self._index_holding_lock(mapping.id)
            if position is None:
                raise MappingNotFoundError(mapping.id)
            stored = self._replace_holding_lock(position, mapping)
        log_event("language_updated", **mapping_summary(stored))
        return stored.model_copy(deep=True)

    def edit(
        self,
        mapping_id: str,
        *,
        is_premium: bool,
        name: str | None = None,
        letters: MappingABC[str, str] | None = None,
        numbers: MappingABC[str, str] | None = None,
    ) -> Mapping:
        """Validate and save an edit batch; duplicates raise and change nothing."""
        with self._lock:
            position = self._index_holding_lock(mapping_id)
            if position is None:
                raise MappingNotFoundError(mapping_id)
            current = self._mappings[position]
            edited = apply_edits(
                current,
                name=name,
                letters=letters,
                numbers=numbers,
                include_numbers=self._full_features_holding_lock(current, is_premium),
            )
            stored = self._replace_holding_lock(position, edited)
        log_event("language_updated", **mapping_summary(stored))
        return stored.model_copy(deep=True)

    def delete(self, mapping: Mapping) -> bool:
        with self._lock:
            position = self._index_holding_lock(mapping.id)
            if position is None:
                return False
            removed = self._mappings.pop(position)
            if self._selected_id == removed.id:
                self._selected_id = self._mappings[0].id if self._mappings else None
            self._save_holding_lock()
        log_event("language_deleted", **mapping_summary(removed))
        return True

    # access rules

    def list_accessible(self, is_premium: bool) -> list[Mapping]:
        with self._lock:
            return [m.model_copy(deep=True) for m in self._mappings if self._is_accessible_holding_lock(m, is_premium)]

    def is_accessible(self, mapping: Mapping, is_premium: bool) -> bool:
        with self._lock:
            return self._is_accessible_holding_lock(mapping, is_premium)

    def can_use_full_features(self, mapping: Mapping, is_premium: bool) -> bool:
        with self._lock:
            return self._full_features_holding_lock(mapping, is_premium)

    def select(self, mapping_id: str, is_premium: bool) -> bool:
        with self._lock:
            position = self._index_holding_lock(mapping_id)
            if position is None or not self._is_accessible_holding_lock(self._mappings[position], is_premium):
                return False
            self._selected_id = mapping_id
        return True

    def on_entitlement_changed(self, is_premium: bool) -> None:
        with self._lock:
            self._is_premium = is_premium
            if is_premium or not self._mappings:
                return
            position = None if self._selected_id is None else self._index_holding_lock(self._selected_id)
            if position is not None and self._is_accessible_holding_lock(self._mappings[position], False):
                return
            reset_to = self._mappings[0].id
            self._selected_id = reset_to
        log_event("selection_reset", reason="entitlement_downgrade", selected=reset_to)

    # sharing

    def export_token(self, mapping: Mapping) -> str:
        return encode_token(mapping.to_record())

    def import_token(self, token: str) -> ImportResult:
        """Decode a share token into a new, not yet added, language."""
        try:
            candidate = Mapping.from_record(decode_token(token))
        except (ValueError, ValidationError) as exc:
            logger.info("import rejected reason=%s error=%s", IMPORT_MALFORMED, type(exc).__name__)
            return ImportResult(ok=False, reason=IMPORT_MALFORMED)
        with self._lock:
            if any(m.name == candidate.name for m in self._mappings):
                logger.info("import rejected reason=%s name=%s", IMPORT_NAME_EXISTS, candidate.name)
                return ImportResult(ok=False, reason=IMPORT_NAME_EXISTS)
        return ImportResult(ok=True, mapping=candidate.model_copy(update={"id": new_mapping_id()}))

    # translation

    def encode(self, text: str, mapping: Mapping, is_premium: bool) -> str:
        full = self.can_use_full_features(mapping, is_premium)
        return engine.encode(text, mapping, is_premium, full_features=full)

    def decode(self, text: str, mapping: Mapping, is_premium: bool) -> str:
        full = self.can_use_full_features(mapping, is_premium)
        return engine.decode(
            text,
            mapping,
            is_premium,
            full_features=full,
            max_window=settings.decode_max_window or None,
        )
