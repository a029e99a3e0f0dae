"""Cipher language models and their persisted record form."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def new_mapping_id() -> str:
    return str(uuid.uuid4()).upper()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# numeric createdDate values are seconds since the Foundation reference date
REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=timezone.utc)


def _normalize_table(value: Any, *, kind: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{kind} mapping must be an object")
    out: dict[str, str] = {}
    for raw_key, token in value.items():
        if not isinstance(raw_key, str) or not raw_key:
            raise ValueError(f"{kind} key must be a non-empty string")
        if not isinstance(token, str):
            raise ValueError(f"{kind} token for {raw_key!r} must be a string")
        # only the first character of a key is meaningful
        key = raw_key[0]
        if kind == "letter":
            key = key.lower()
            if len(key) != 1 or not key.isalpha():
                raise ValueError(f"letter key {raw_key!r} is not a letter")
        elif key not in "0123456789":
            raise ValueError(f"number key {raw_key!r} is not a digit")
        if not token:
            continue
        out[key] = token
    return out


class Mapping(BaseModel):
    """A named cipher: letters (and optionally digits) to replacement tokens.

    Field aliases are the persisted names (``mapping``, ``numberMapping``,
    ``createdDate``); python code uses the attribute names.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_mapping_id)
    name: str
    letter_map: dict[str, str] = Field(default_factory=dict, alias="mapping")
    number_map: dict[str, str] = Field(default_factory=dict, alias="numberMapping")
    created_at: datetime = Field(default_factory=utcnow, alias="createdDate")

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("id must not be empty")
        return value

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value

    @field_validator("letter_map", mode="before")
    @classmethod
    def _check_letters(cls, value: Any) -> dict[str, str]:
        return _normalize_table(value, kind="letter")

    @field_validator("number_map", mode="before")
    @classmethod
    def _check_numbers(cls, value: Any) -> dict[str, str]:
        return _normalize_table(value, kind="number")

    @field_validator("created_at", mode="before")
    @classmethod
    def _from_reference_seconds(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return REFERENCE_DATE + timedelta(seconds=value)
        return value

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def has_number_mapping(self) -> bool:
        return bool(self.number_map)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, record: Any) -> "Mapping":
        return cls.model_validate(record)


class ImportResult(BaseModel):
    ok: bool
    reason: str | None = None
    mapping: Mapping | None = None
