"""FastAPI server exposing the wardrobe and stylist chat."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel, ValidationError

from logic.validation import validation_failure
from models.wardrobe_entry import WardrobeEntry
from wardrobe_app.app import WardrobeAssistantApp
from wardrobe_app.errors import (
    Busy,
    CorruptMetadata,
    InvalidInput,
    NotFound,
    PartialDelete,
    SourceUnreadable,
    WardrobeError,
)


class ChatRequest(BaseModel):
    """Request payload for one stylist question."""

    message: str


def _entry_payload(entry: WardrobeEntry) -> Dict[str, str]:
    return {"id": entry.entry_id, "blob_ref": entry.blob_ref, "description": entry.description}


def _upload_suffix(upload: UploadFile) -> str:
    """Keep the uploaded file's extension so the stored blob keeps its type."""

    return Path(upload.filename or "").suffix.lower()


def _raise_http(exc: WardrobeError) -> NoReturn:
    if isinstance(exc, (InvalidInput, SourceUnreadable)):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, NotFound):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, Busy):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, CorruptMetadata):
        detail: Any = str(exc)
        if isinstance(exc.__cause__, ValidationError):
            detail = validation_failure(str(exc), exc.__cause__)
        raise HTTPException(status_code=503, detail=detail) from exc
    raise HTTPException(status_code=500, detail=str(exc)) from exc


def create_app(wardrobe_app: Optional[WardrobeAssistantApp] = None) -> FastAPI:
    """Build the ASGI app around an initialized :class:`WardrobeAssistantApp`."""

    assistant_app = wardrobe_app or WardrobeAssistantApp()
    api = FastAPI(title="Wardrobe Assistant", version="0.1.0")
    api.state.wardrobe = assistant_app

    startup_error: Dict[str, Optional[str]] = {"error": None}
    try:
        assistant_app.initialize()
    except CorruptMetadata as exc:
        # Surface the corruption on every call instead of resetting silently.
        startup_error["error"] = str(exc)

    def _ensure_ready() -> None:
        if startup_error["error"]:
            raise HTTPException(status_code=503, detail=startup_error["error"])

    @api.get("/healthz")
    async def healthcheck() -> dict:
        """Readiness probe reporting storage and assistant configuration."""

        return {
            "status": "degraded" if startup_error["error"] else "ok",
            "service": "wardrobe-assistant",
            "environment": assistant_app.config.environment or "local",
            "model": assistant_app.config.model,
            "assistant_backend": assistant_app.config.assistant_backend,
        }

    @api.get("/wardrobe")
    def list_wardrobe() -> dict:
        _ensure_ready()
        return {"items": [_entry_payload(entry) for entry in assistant_app.list_items()]}

    @api.get("/wardrobe/{entry_id}/image")
    def wardrobe_image(entry_id: str) -> FileResponse:
        _ensure_ready()
        try:
            entry = assistant_app.repository.get(entry_id)
        except WardrobeError as exc:
            _raise_http(exc)
        return FileResponse(assistant_app.blob_path(entry))

    @api.post("/wardrobe", status_code=201)
    def add_wardrobe_item(
        photo: UploadFile = File(..., description="Garment photo"),
        description: str = Form(..., description="Free text describing the garment"),
    ) -> dict:
        """Store an uploaded photo in the wardrobe and record its description."""

        _ensure_ready()
        with tempfile.TemporaryDirectory(prefix="wardrobe-upload-") as staging:
            source = Path(staging) / f"upload{_upload_suffix(photo)}"
            with source.open("wb") as handle:
                shutil.copyfileobj(photo.file, handle)
            try:
                entry = assistant_app.add_item(source, description)
            except WardrobeError as exc:
                _raise_http(exc)
        return _entry_payload(entry)

    @api.delete("/wardrobe/{entry_id}")
    def delete_wardrobe_item(entry_id: str) -> dict:
        """Delete an entry; a blob left behind is reported, not treated as failure."""

        _ensure_ready()
        try:
            entry = assistant_app.delete_item(entry_id)
        except PartialDelete as exc:
            return {"status": "partial", "deleted": _entry_payload(exc.entry), "orphan_blob": exc.blob_ref}
        except WardrobeError as exc:
            _raise_http(exc)
        return {"status": "ok", "deleted": _entry_payload(entry)}

    @api.get("/wardrobe/consistency")
    def wardrobe_consistency() -> dict:
        _ensure_ready()
        report = assistant_app.check_consistency()
        return {
            "consistent": report.consistent,
            "orphan_blobs": list(report.orphan_blobs),
            "dangling_entries": [_entry_payload(entry) for entry in report.dangling_entries],
        }

    @api.post("/wardrobe/repair")
    def repair_wardrobe(drop_dangling: bool = False) -> dict:
        _ensure_ready()
        try:
            result = assistant_app.repair(drop_dangling=drop_dangling)
        except WardrobeError as exc:
            _raise_http(exc)
        return {
            "deleted_blobs": result.deleted_blobs,
            "dropped_entries": [_entry_payload(entry) for entry in result.dropped_entries],
            "failed_blobs": result.failed_blobs,
        }

    @api.post("/wardrobe/reset")
    def reset_wardrobe_metadata() -> dict:
        """Set aside an unreadable metadata file; existing photos become orphans."""

        if not startup_error["error"]:
            raise HTTPException(status_code=409, detail="Metadata loaded cleanly; there is nothing to reset")
        try:
            quarantined = assistant_app.reset_corrupt_metadata()
        except WardrobeError as exc:
            _raise_http(exc)
        startup_error["error"] = None
        return {"status": "ok", "quarantined": quarantined.name if quarantined else None}

    @api.post("/chat")
    def chat(request: ChatRequest) -> dict:
        """Ask the stylist; assistant outages come back as a fallback reply."""

        _ensure_ready()
        try:
            reply = assistant_app.ask(request.message)
        except WardrobeError as exc:
            _raise_http(exc)
        return {"reply": reply, "turns": len(assistant_app.history())}

    @api.get("/chat/history")
    def chat_history() -> dict:
        return {"turns": [turn.as_message() for turn in assistant_app.history()]}

    return api


_APP: Optional[FastAPI] = None


def get_app() -> FastAPI:
    """Expose a lazily built FastAPI instance for ASGI servers."""

    global _APP
    if _APP is None:
        _APP = create_app()
    return _APP


def serve(host: str = "127.0.0.1", port: int = 8080) -> None:
    import uvicorn

    uvicorn.run("server.api:get_app", host=host, port=port, factory=True, reload=False)


if __name__ == "__main__":
    serve()
