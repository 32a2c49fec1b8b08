from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from realism_builder.assembly.labels import ReferenceRole, annotate
from realism_builder.config import settings
from realism_builder.errors import EmptyMessageError, ImageDecodeError, SessionBusyError
from realism_builder.prompts.compiler import ClothingSource, GenerationOptions, compile_prompt
from realism_builder.prompts.directive import extract_directive
from realism_builder.prompts.framing import classify, constraints_for
from realism_builder.providers.base import ConversationMessage, InlineImage, MessageRole
from realism_builder.providers.gemini_provider import GeminiProvider
from realism_builder.session.generation import (
    BlockedOutcome,
    ErrorOutcome,
    FailedOutcome,
    GenerationOutcome,
    ImageOutcome,
    build_faceswap_request,
)
from realism_builder.session.store import Session, SessionStore

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="realism_builder")

store = SessionStore()


class CompileRequest(BaseModel):
    clothing_source: ClothingSource = ClothingSource.TARGET
    custom_text: str = ""
    render_size: str = Field(default_factory=lambda: settings.image_size)
    source_image_count: int = Field(1, ge=1)
    has_background: bool = False


class ChatRequest(BaseModel):
    text: str = ""
    images: list[str] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    images: list[str] = Field(default_factory=list)
    include_panel_images: bool = True
    include_chat_images: bool = True


def get_provider() -> GeminiProvider:
    if not settings.gemini_api_key:
        raise HTTPException(status_code=400, detail="GEMINI_API_KEY is not set")
    return GeminiProvider(api_key=settings.gemini_api_key)


@app.exception_handler(SessionBusyError)
async def _busy_handler(request: Request, exc: SessionBusyError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": str(exc)})


@app.exception_handler(EmptyMessageError)
async def _empty_handler(request: Request, exc: EmptyMessageError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(ImageDecodeError)
async def _decode_handler(request: Request, exc: ImageDecodeError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


def parse_data_url(value: str) -> InlineImage:
    """
    `data:image/png;base64,....` -> InlineImage. Anything else is a 400.
    """
    header, sep, payload = (value or "").partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise HTTPException(status_code=400, detail="images must be base64 data URLs")
    mime = header[len("data:") :].split(";", 1)[0] or "application/octet-stream"
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"invalid base64 image payload: {exc}") from exc
    return InlineImage(data=data, mime_type=mime)


def to_data_url(image: InlineImage) -> str:
    return f"data:{image.mime_type};base64,{base64.b64encode(image.data).decode('ascii')}"


async def _read_upload(file: UploadFile) -> InlineImage:
    content = await file.read()
    return InlineImage(data=content, mime_type=file.content_type or "image/png")


def _get_session(session_id: str) -> Session:
    try:
        return store.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")


def _parse_role(value: str) -> ReferenceRole:
    try:
        return ReferenceRole(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"unknown reference role '{value}'")


def _message_payload(m: ConversationMessage) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "role": m.role.value,
        "text": m.text,
        "failed": m.failed,
        "image_count": len(m.images),
        "directive": None,
    }
    if m.role is MessageRole.ASSISTANT and not m.failed:
        directive = extract_directive(m.text)
        if directive is not None:
            payload["directive"] = {
                "before": directive.before,
                "prompt": directive.prompt,
                "after": directive.after,
            }
    return payload


def _session_payload(session: Session) -> dict[str, Any]:
    return {
        "session_id": session.session_id,
        "created_at": session.created_at,
        "chat_state": session.chat.state,
        "generating": session.generation.busy,
        "faceswap_running": session.faceswap.busy,
        "messages": [_message_payload(m) for m in session.chat.messages],
        "pending_image_count": len(session.chat.pending_images),
        "references": [
            {"role": a.reference.role.value, "index": a.reference.index, "label": a.label}
            for a in session.panel.annotated()
        ],
        "history": [
            {"prompt": h.prompt, "created_at": h.created_at, "image": to_data_url(h.image)}
            for flow in (session.generation, session.faceswap)
            for h in flow.history
        ],
    }


def _outcome_response(outcome: GenerationOutcome, **extra: Any) -> JSONResponse:
    if isinstance(outcome, ImageOutcome):
        return JSONResponse(status_code=200, content={"kind": outcome.kind, "image": to_data_url(outcome.image), **extra})
    if isinstance(outcome, BlockedOutcome):
        content = {"kind": outcome.kind, "reason": outcome.reason.value, "error": outcome.message, **extra}
        return JSONResponse(status_code=400, content=content)
    if isinstance(outcome, FailedOutcome):
        return JSONResponse(status_code=500, content={"kind": outcome.kind, "error": outcome.message, **extra})
    if isinstance(outcome, ErrorOutcome):
        return JSONResponse(status_code=outcome.status_code, content={"kind": outcome.kind, "error": outcome.message, **extra})
    raise TypeError(f"unexpected outcome {outcome!r}")


@app.post("/api/prompts/compile")
def compile_prompt_endpoint(req: CompileRequest):
    framing = classify(req.custom_text)
    prompt = compile_prompt(
        GenerationOptions(
            clothing_source=req.clothing_source,
            custom_text=req.custom_text,
            render_size=req.render_size,
            source_image_count=req.source_image_count,
            has_background=req.has_background,
        )
    )
    return {"prompt": prompt, "framing": framing.value, "constraints": constraints_for(framing)}


@app.post("/api/labels")
async def label_image(label: str = Form(...), file: UploadFile = File(...)):
    raw = await _read_upload(file)
    data = await run_in_threadpool(annotate, raw.data, label)
    return Response(content=data, media_type="image/jpeg")


@app.post("/sessions", status_code=201)
def create_session(provider: GeminiProvider = Depends(get_provider)):
    session = store.create(provider)
    logger.info("created session %s", session.session_id)
    return {"session_id": session.session_id}


@app.get("/sessions/{session_id}")
def read_session(session_id: str):
    return _session_payload(_get_session(session_id))


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str):
    _get_session(session_id)
    store.delete(session_id)
    return Response(status_code=204)


@app.post("/sessions/{session_id}/references")
async def add_references(
    session_id: str,
    role: str = Form(...),
    files: list[UploadFile] = File(...),
):
    session = _get_session(session_id)
    ref_role = _parse_role(role)
    images = [await _read_upload(f) for f in files]
    try:
        await run_in_threadpool(session.panel.add, ref_role, images)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _session_payload(session)


@app.delete("/sessions/{session_id}/references/{role}/{index}")
def remove_reference(session_id: str, role: str, index: int):
    session = _get_session(session_id)
    try:
        session.panel.remove(_parse_role(role), index)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _session_payload(session)


@app.post("/sessions/{session_id}/chat")
async def send_chat(session_id: str, req: ChatRequest):
    session = _get_session(session_id)
    if session.chat.busy:
        raise SessionBusyError("a chat response is already pending")
    images = [parse_data_url(v) for v in req.images]
    for image in images:
        session.chat.add_pending_image(image)
    reply = await session.chat.submit(req.text)
    return {"reply": _message_payload(reply), "session": _session_payload(session)}


@app.post("/sessions/{session_id}/chat/retry")
async def retry_chat(session_id: str):
    session = _get_session(session_id)
    reply = await session.chat.retry()
    return {"reply": _message_payload(reply), "session": _session_payload(session)}


@app.post("/sessions/{session_id}/chat/reset")
def reset_chat(session_id: str):
    session = _get_session(session_id)
    session.chat.reset()
    return _session_payload(session)


@app.post("/sessions/{session_id}/generate")
async def generate_image(session_id: str, req: GenerateRequest):
    session = _get_session(session_id)
    images: list[InlineImage] = []
    if req.include_panel_images:
        images.extend(session.panel.images())
    if req.include_chat_images:
        images.extend(session.chat.chat_images())
    images.extend(parse_data_url(v) for v in req.images)

    outcome = await session.generation.run(req.prompt, images)
    return _outcome_response(outcome, prompt=req.prompt)


@app.post("/sessions/{session_id}/faceswap")
async def faceswap(
    session_id: str,
    sources: list[UploadFile] = File(...),
    target: UploadFile = File(...),
    background: UploadFile | None = File(None),
    clothing_source: str = Form("target"),
    instructions: str = Form(""),
    image_size: str = Form(""),
):
    session = _get_session(session_id)
    try:
        clothing = ClothingSource(clothing_source)
    except ValueError:
        raise HTTPException(status_code=400, detail="clothing_source must be 'target' or 'source'")

    source_images = [await _read_upload(f) for f in sources]
    target_image = await _read_upload(target)
    background_image = await _read_upload(background) if background is not None else None

    prompt, images = await run_in_threadpool(
        build_faceswap_request,
        source_images,
        target_image,
        background=background_image,
        clothing_source=clothing,
        custom_text=instructions,
        render_size=image_size.strip() or settings.image_size,
    )
    outcome = await session.faceswap.run(prompt, images)
    return _outcome_response(outcome, prompt=prompt)
