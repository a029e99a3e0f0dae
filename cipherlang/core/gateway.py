"""FastAPI app entry: language management and translation endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cipherlang.config.settings import settings
from cipherlang.core.editing import apply_edits
from cipherlang.core.errors import DuplicateTokenError, MappingNotFoundError, MappingValidationError, StorageError
from cipherlang.core.generators import STYLES, generate, generate_shuffled_digits
from cipherlang.core.models import Mapping
from cipherlang.core.store import IMPORT_NAME_EXISTS, MappingStore
from cipherlang.storage import create_store
from cipherlang.storage.kv import KVStore, MemoryKVStore
from cipherlang.util.logger import logger

app = FastAPI(title=settings.app_name)
_store: MappingStore | None = None
_MODES = frozenset({"encode", "decode"})
_NUMBER_STYLES = {"shuffled_digits": generate_shuffled_digits}


def _open_backend() -> KVStore:
    try:
        return create_store()
    except StorageError as exc:
        logger.warning(
            "storage backend unavailable, languages kept in memory only backend=%s error=%s",
            settings.storage_backend,
            exc,
        )
        return MemoryKVStore()


def get_store() -> MappingStore:
    global _store
    if _store is None:
        _store = MappingStore(_open_backend())
    return _store


def set_store(store: MappingStore | None) -> None:
    """Install the store used by the handlers (application shell and tests)."""
    global _store
    _store = store


def _error(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    content: dict[str, Any] = {"error": error}
    if detail:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content)


async def _json_body(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _premium(raw: Any, store: MappingStore) -> bool:
    if raw is None:
        return store.is_premium
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return bool(raw)


def _table(raw: Any) -> dict[str, str] | None:
    if raw is None:
        return None
    if not isinstance(raw, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in raw.items()):
        raise MappingValidationError("mapping tables must map strings to strings")
    return raw


def _language_view(store: MappingStore, mapping: Mapping, is_premium: bool) -> dict[str, Any]:
    view = mapping.to_record()
    view["fullFeatures"] = store.can_use_full_features(mapping, is_premium)
    return view


def _duplicate_response(exc: DuplicateTokenError) -> JSONResponse:
    return _error(400, "duplicate_token", f"{exc.source!r} would reuse the token of {exc.existing!r}")


@app.get("/health")
def health() -> dict:
    logger.debug("health check")
    return {"status": "ok"}


@app.get("/v1/styles")
def list_styles() -> dict:
    return {"styles": sorted(STYLES), "numberStyles": sorted(_NUMBER_STYLES)}


@app.get("/v1/languages")
def list_languages(request: Request) -> JSONResponse:
    store = get_store()
    is_premium = _premium(request.query_params.get("premium"), store)
    selected = store.selected
    return JSONResponse(
        content={
            "languages": [_language_view(store, m, is_premium) for m in store.list_accessible(is_premium)],
            "selected": selected.id if selected else None,
        }
    )


@app.post("/v1/languages")
async def create_language(request: Request) -> JSONResponse:
    store = get_store()
    body = await _json_body(request)
    if body is None:
        return _error(400, "invalid_json")
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        return _error(400, "missing_params", "name required")
    is_premium = _premium(body.get("premium"), store)
    try:
        letters = _table(body.get("mapping"))
        numbers = _table(body.get("numberMapping"))
        style = body.get("style")
        if style is not None:
            if letters is not None:
                return _error(400, "invalid_mapping", "style and mapping are mutually exclusive")
            letters = generate(str(style))
        number_style = body.get("numberStyle")
        if number_style is not None:
            if numbers is not None:
                return _error(400, "invalid_mapping", "numberStyle and numberMapping are mutually exclusive")
            if not isinstance(number_style, str) or number_style not in _NUMBER_STYLES:
                return _error(400, "invalid_mapping", f"unknown number style: {number_style}")
            numbers = _NUMBER_STYLES[number_style]()
        if numbers and not is_premium:
            return _error(403, "access_denied", "number mapping requires premium")
        mapping = apply_edits(Mapping(name=name), letters=letters, numbers=numbers)
    except DuplicateTokenError as exc:
        return _duplicate_response(exc)
    except (MappingValidationError, ValueError) as exc:
        return _error(400, "invalid_mapping", str(exc))
    store.add(mapping)
    return JSONResponse(status_code=201, content=_language_view(store, mapping, is_premium))


@app.put("/v1/languages/{language_id}")
async def update_language(language_id: str, request: Request) -> JSONResponse:
    store = get_store()
    body = await _json_body(request)
    if body is None:
        return _error(400, "invalid_json")
    current = store.get(language_id)
    if current is None:
        return _error(404, "not_found")
    is_premium = _premium(body.get("premium"), store)
    name = body.get("name")
    if name is not None and not isinstance(name, str):
        return _error(400, "invalid_mapping", "name must be a string")
    try:
        letters = _table(body.get("mapping"))
        numbers = _table(body.get("numberMapping"))
        if numbers and not store.can_use_full_features(current, is_premium):
            return _error(403, "access_denied", "number mapping requires premium")
        updated = store.edit(language_id, is_premium=is_premium, name=name, letters=letters, numbers=numbers)
    except DuplicateTokenError as exc:
        return _duplicate_response(exc)
    except MappingNotFoundError:
        return _error(404, "not_found")
    except MappingValidationError as exc:
        return _error(400, "invalid_mapping", str(exc))
    return JSONResponse(content=_language_view(store, updated, is_premium))


@app.delete("/v1/languages/{language_id}")
def delete_language(language_id: str) -> JSONResponse:
    store = get_store()
    mapping = store.get(language_id)
    if mapping is None or not store.delete(mapping):
        return _error(404, "not_found")
    selected = store.selected
    return JSONResponse(content={"ok": True, "selected": selected.id if selected else None})


@app.post("/v1/languages/{language_id}/select")
def select_language(language_id: str, request: Request) -> JSONResponse:
    store = get_store()
    if store.get(language_id) is None:
        return _error(404, "not_found")
    if not store.select(language_id, _premium(request.query_params.get("premium"), store)):
        return _error(403, "access_denied", "language requires premium")
    return JSONResponse(content={"ok": True, "selected": language_id})


@app.get("/v1/languages/{language_id}/export")
def export_language(language_id: str) -> JSONResponse:
    store = get_store()
    mapping = store.get(language_id)
    if mapping is None:
        return _error(404, "not_found")
    return JSONResponse(content={"token": store.export_token(mapping)})


@app.post("/v1/languages/import")
async def import_language(request: Request) -> JSONResponse:
    store = get_store()
    body = await _json_body(request)
    if body is None:
        return _error(400, "invalid_json")
    token = body.get("token")
    if not isinstance(token, str) or not token.strip():
        return _error(400, "missing_token")
    result = store.import_token(token)
    if not result.ok or result.mapping is None:
        if result.reason == IMPORT_NAME_EXISTS:
            return _error(409, "name_exists")
        return _error(400, "malformed_token")
    store.add(result.mapping)
    is_premium = _premium(body.get("premium"), store)
    return JSONResponse(status_code=201, content=_language_view(store, result.mapping, is_premium))


@app.post("/v1/translate")
async def translate(request: Request) -> JSONResponse:
    store = get_store()
    body = await _json_body(request)
    if body is None:
        return _error(400, "invalid_json")
    text = body.get("text")
    mode = str(body.get("mode") or "encode").strip().lower()
    if not isinstance(text, str):
        return _error(400, "missing_params", "text required")
    if mode not in _MODES:
        return _error(400, "invalid_mode", "mode must be encode or decode")
    if len(text) > settings.max_text_length:
        return _error(413, "text_too_long")

    is_premium = _premium(body.get("premium"), store)
    if not is_premium and len(text) > settings.free_text_limit:
        return _error(413, "text_too_long", f"free plan translates up to {settings.free_text_limit} characters")
    language_id = body.get("language_id")
    mapping = store.get(str(language_id)) if language_id else store.selected
    if mapping is None:
        return _error(404, "not_found")
    if not store.is_accessible(mapping, is_premium):
        return _error(403, "access_denied", "language requires premium")

    if mode == "encode":
        output = store.encode(text, mapping, is_premium)
    else:
        output = store.decode(text, mapping, is_premium)
    return JSONResponse(content={"output": output, "mode": mode, "language_id": mapping.id})


@app.post("/v1/entitlement")
async def entitlement_changed(request: Request) -> JSONResponse:
    store = get_store()
    body = await _json_body(request)
    if body is None or "premium" not in body:
        return _error(400, "missing_params", "premium required")
    store.on_entitlement_changed(_premium(body["premium"], store))
    selected = store.selected
    logger.info("entitlement changed premium=%s selected=%s", store.is_premium, selected.id if selected else None)
    return JSONResponse(content={"premium": store.is_premium, "selected": selected.id if selected else None})
