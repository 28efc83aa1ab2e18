"""FastAPI application exposing collection configuration editing."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from xconf.config import AppConfig
from xconf.dialect.parser import XConfParseError
from xconf.dialect.serializer import XmlFormat
from xconf.document import ConfigDocument
from xconf.models import ACTION_INCLUDE
from xconf.storage.base import StoreError
from xconf.storage.sqlite import SQLiteResourceStore

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="xconf", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class FullTextFlagsPayload(BaseModel):
    default_all: bool | None = None
    attributes: bool | None = None
    alphanum: bool | None = None


class PathPayload(BaseModel):
    xpath: str
    action: str = ACTION_INCLUDE


class PathUpdatePayload(BaseModel):
    xpath: str | None = None
    action: str | None = None


class RangePayload(BaseModel):
    xpath: str
    type: str


class RangeUpdatePayload(BaseModel):
    xpath: str | None = None
    type: str | None = None


class QNamePayload(BaseModel):
    qname: str
    type: str


class QNameUpdatePayload(BaseModel):
    qname: str | None = None
    type: str | None = None


class TriggerPayload(BaseModel):
    event: str
    handler_class: str
    parameters: Dict[str, str] = {}


def _resolve_db_path(db: Path | None) -> Path:
    if db is None:
        db = getattr(app.state, "db_path", None)
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_document(
    collection: str, db: Path | None, config: AppConfig | None = None
) -> ConfigDocument:
    if not collection.strip("/"):
        raise HTTPException(status_code=400, detail="Empty collection path")

    resolved_db = _resolve_db_path(db)
    _ensure_db_parent(resolved_db)
    store = SQLiteResourceStore(resolved_db)
    try:
        return ConfigDocument(
            collection, store, fmt=XmlFormat(newline=(config or AppConfig()).newline), strict=True
        )
    except XConfParseError as exc:
        store.close()
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except StoreError as exc:
        store.close()
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _apply(collection: str, db: Path | None, change: Callable[[ConfigDocument], None]) -> Dict[str, Any]:
    """Load a configuration, apply ``change`` and save it if anything changed."""
    document = _open_document(collection, db)
    try:
        try:
            change(document)
        except IndexError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        if not document.has_changed():
            return {"status": "unchanged", "config": document.to_dict()}
        if not document.save():
            raise HTTPException(status_code=500, detail=f"Failed to save configuration of {collection}")
    finally:
        document.store.close()

    return {"status": "ok", "config": document.to_dict()}


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/config")
async def get_config(collection: str, db: Path | None = None) -> Dict[str, Any]:
    document = _open_document(collection, db)
    document.store.close()
    return document.to_dict()


@app.get("/config/xml")
async def get_config_xml(
    collection: str, db: Path | None = None, crlf: bool = False
) -> Response:
    config = AppConfig(newline="\r\n" if crlf else "\n")
    document = _open_document(collection, db, config)
    document.store.close()
    return Response(content=document.to_xml(), media_type="application/xml")


@app.put("/config/fulltext")
async def set_fulltext(
    payload: FullTextFlagsPayload, collection: str, db: Path | None = None
) -> Dict[str, Any]:
    def change(document: ConfigDocument) -> None:
        if payload.default_all is not None:
            document.set_fulltext_default_all(payload.default_all)
        if payload.attributes is not None:
            document.set_fulltext_attributes(payload.attributes)
        if payload.alphanum is not None:
            document.set_fulltext_alphanum(payload.alphanum)

    return _apply(collection, db, change)


@app.post("/config/fulltext/paths")
async def add_fulltext_path(payload: PathPayload, collection: str, db: Path | None = None) -> Dict[str, Any]:
    return _apply(collection, db, lambda doc: doc.add_fulltext_path(payload.xpath, payload.action))


@app.patch("/config/fulltext/paths/{index}")
async def update_fulltext_path(
    index: int, payload: PathUpdatePayload, collection: str, db: Path | None = None
) -> Dict[str, Any]:
    return _apply(
        collection, db, lambda doc: doc.update_fulltext_path(index, payload.xpath, payload.action)
    )


@app.delete("/config/fulltext/paths/{index}")
async def delete_fulltext_path(index: int, collection: str, db: Path | None = None) -> Dict[str, Any]:
    return _apply(collection, db, lambda doc: doc.delete_fulltext_path(index))


@app.post("/config/range")
async def add_range_index(payload: RangePayload, collection: str, db: Path | None = None) -> Dict[str, Any]:
    return _apply(collection, db, lambda doc: doc.add_range_index(payload.xpath, payload.type))


@app.patch("/config/range/{index}")
async def update_range_index(
    index: int, payload: RangeUpdatePayload, collection: str, db: Path | None = None
) -> Dict[str, Any]:
    return _apply(
        collection, db, lambda doc: doc.update_range_index(index, payload.xpath, payload.type)
    )


@app.delete("/config/range/{index}")
async def delete_range_index(index: int, collection: str, db: Path | None = None) -> Dict[str, Any]:
    return _apply(collection, db, lambda doc: doc.delete_range_index(index))


@app.post("/config/qname")
async def add_qname_index(payload: QNamePayload, collection: str, db: Path | None = None) -> Dict[str, Any]:
    return _apply(collection, db, lambda doc: doc.add_qname_index(payload.qname, payload.type))


@app.patch("/config/qname/{index}")
async def update_qname_index(
    index: int, payload: QNameUpdatePayload, collection: str, db: Path | None = None
) -> Dict[str, Any]:
    return _apply(
        collection, db, lambda doc: doc.update_qname_index(index, payload.qname, payload.type)
    )


@app.delete("/config/qname/{index}")
async def delete_qname_index(index: int, collection: str, db: Path | None = None) -> Dict[str, Any]:
    return _apply(collection, db, lambda doc: doc.delete_qname_index(index))


@app.post("/config/triggers")
async def add_trigger(payload: TriggerPayload, collection: str, db: Path | None = None) -> Dict[str, Any]:
    return _apply(
        collection,
        db,
        lambda doc: doc.add_trigger(payload.event, payload.handler_class, payload.parameters),
    )


@app.delete("/config/triggers/{index}")
async def delete_trigger(index: int, collection: str, db: Path | None = None) -> Dict[str, Any]:
    return _apply(collection, db, lambda doc: doc.delete_trigger(index))
