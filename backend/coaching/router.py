# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Coaching endpoints – chat (REST and WebSocket), progress, assessment.

* Chat works with or without authentication.  An authenticated caller who
  sends no profile/progress gets the cached ones from their vault; an
  anonymous caller simply gets less personal replies.
* Progress and assessment always go through ``vault.service.mutate`` so the
  change is encrypted and persisted before the response is sent.
* The model never blocks the event loop: chunks are pulled on the thread
  pool, and a WebSocket client that disconnects mid-reply stops the
  generation.
"""

import math
from datetime import datetime, timezone
from typing import Any, Optional

import orjson
from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from database import get_db
from core.config import settings
from core.errors import CoachError, ModelUnavailable, ValidationError
from core.logger import logger
from core.security import AuthContext, get_client_ip, get_current_auth, get_optional_auth, verify_token
from core.sessions import session_store
from coaching import progress as progress_rules
from coaching.limits import chat_limiter, enforce_chat_rate_limit
from coaching.llm import FALLBACK_REPLY, CompletionClient, get_completion_client, stream_completion
from coaching.memory import exchange_memory
from coaching.prompts import (
    PromptContext,
    approach_directive,
    build_prompt,
    detect_emotional_state,
    determine_coaching_approach,
    generation_settings,
    template_for_mode,
)
from coaching.schemas import (
    AssessmentRequest,
    AssessmentResponse,
    ChatRequest,
    ChatResponse,
    ProgressUpdate,
    ProgressUpdateResponse,
)
from vault import service as vault_service
from vault.cache import coaching_cache

router = APIRouter(tags=["coaching"])

_CONTEXT_FIELDS = ("profile", "progress", "goals", "recentChat", "computed", "mode")


def _clean_message(raw: Any) -> str:
    text = raw.strip() if isinstance(raw, str) else ("" if raw is None else str(raw).strip())
    if not text:
        raise ValidationError("Message is required")
    if len(text) > settings.max_message_length:
        raise ValidationError(
            f"Message is too long. Please keep requests under {settings.max_message_length} characters."
        )
    return text


def _prepare(message: str, fields: dict, user_id: Optional[str], session_context: str) -> tuple[str, dict]:
    """Turn a message plus loosely-typed client context into (prompt, sampling settings)."""
    mode = str(fields.get("mode") or "general")
    profile = fields.get("profile")
    progress = fields.get("progress")
    if user_id is not None:
        profile = profile if profile is not None else coaching_cache.profile(user_id)
        progress = progress if progress is not None else coaching_cache.progress(user_id)
    computed = fields.get("computed")

    approach = determine_coaching_approach(message, mode, profile, computed)
    emotion = detect_emotional_state(message)
    context = PromptContext(
        profile=profile if isinstance(profile, dict) else None,
        progress=progress if isinstance(progress, dict) else None,
        computed=computed if isinstance(computed, dict) else None,
        goals=fields.get("goals") if isinstance(fields.get("goals"), list) else [],
        recent_chat=fields.get("recentChat") if isinstance(fields.get("recentChat"), list) else [],
        mode=mode,
        approach=approach,
        approach_directive=approach_directive(approach, emotion.state),
        emotion=emotion.state,
        emotion_directive=emotion.directive,
        crisis=emotion.crisis,
        session_context=session_context,
    )
    prompt = build_prompt(template_for_mode(mode), context, message)
    return prompt, generation_settings(mode, approach, emotion.state, emotion.crisis)


# ---------------------------------------------------------------------------
# POST /api/chat
# ---------------------------------------------------------------------------


@router.post("/api/chat", response_model=ChatResponse, dependencies=[Depends(enforce_chat_rate_limit)])
async def chat(
    body: ChatRequest,
    request: Request,
    auth: Optional[AuthContext] = Depends(get_optional_auth),
    client: CompletionClient = Depends(get_completion_client),
):
    """One full coaching reply.  Model failures degrade to a fallback reply."""
    message = _clean_message(body.message)
    user_id = auth.user_id if auth else None
    memory_key = user_id or f"anonymous:{get_client_ip(request)}"
    logger.info("/api/chat called by %s. Message length: %d", memory_key, len(message))

    session_context = body.context or exchange_memory.context_for(memory_key)
    prompt, generation = _prepare(message, body.model_dump(), user_id, session_context)

    fallback = False
    chunks: list[str] = []
    stream = stream_completion(client, prompt, generation)
    try:
        async for chunk in stream:
            chunks.append(chunk)
    except ModelUnavailable:
        fallback = True
    finally:
        await stream.aclose()

    reply = FALLBACK_REPLY if fallback else "".join(chunks).strip()
    if not fallback:
        exchange_memory.remember(memory_key, message, reply)
    logger.info("/api/chat response ready. Bytes: %d fallback=%s", len(reply), fallback)

    return ChatResponse(
        response=reply,
        userId=memory_key,
        timestamp=datetime.now(timezone.utc).isoformat(),
        context="Used previous context" if session_context else "Fresh conversation",
        fallback=fallback,
    )


# ---------------------------------------------------------------------------
# GET / POST /api/progress
# ---------------------------------------------------------------------------


def _positive_number(value, field: str):
    if isinstance(value, bool) or not isinstance(value, (int, float)) \
            or not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{field} must be a positive number.")
    return value


@router.get("/api/progress")
def get_progress(
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    """Return the progress sub-document of the caller's vault."""
    document, _key = vault_service.load_for_request(db, auth)
    progress = document.get("progress")
    if not isinstance(progress, dict):
        progress = vault_service.default_progress(auth.user_id)
    return progress


@router.post("/api/progress", response_model=ProgressUpdateResponse)
def post_progress(
    body: ProgressUpdate,
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    """Append a milestone; ``improvement`` is previous minus new item count."""
    item_count = _positive_number(body.itemCount, "itemCount")
    key = vault_service.resolve_key(auth)
    logger.info("POST /api/progress by %s. itemCount=%s", auth.user_id, item_count)

    added: dict = {}

    def _append(document: dict) -> None:
        added.update(progress_rules.append_milestone(
            document, auth.user_id, item_count, body.milestone or "", body.notes or "",
        ))

    document = vault_service.mutate(db, auth.user_id, key, _append)
    return ProgressUpdateResponse(
        progress=document["progress"],
        latestMilestone=added,
        message=f"Great progress! You've reduced to {item_count} items.",
    )


# ---------------------------------------------------------------------------
# POST /api/assessment
# ---------------------------------------------------------------------------


@router.post("/api/assessment", response_model=AssessmentResponse)
def post_assessment(
    body: AssessmentRequest,
    auth: AuthContext = Depends(get_current_auth),
    db: Session = Depends(get_db),
):
    """Create or refresh the profile from the assessment wizard."""
    current_items = _positive_number(body.currentItems, "currentItems")
    key = vault_service.resolve_key(auth)
    logger.info("/api/assessment by %s. currentItems=%s", auth.user_id, current_items)

    result: dict = {}

    def _assess(document: dict) -> None:
        result.update(progress_rules.apply_assessment(
            document,
            auth.user_id,
            current_items,
            lifestyle=body.lifestyle,
            motivation=body.motivation,
            challenges=body.challenges,
        ))

    vault_service.mutate(db, auth.user_id, key, _assess)
    return AssessmentResponse(**result)


# ---------------------------------------------------------------------------
# WebSocket /ws/chat  – streamed replies
# ---------------------------------------------------------------------------


def _socket_user_id(websocket: WebSocket) -> Optional[str]:
    """Resolve the caller from their session cookie; anonymous on any failure."""
    state = session_store.get(websocket.cookies.get(settings.session_cookie_name))
    if state is None:
        return None
    try:
        claims = verify_token(state.token)
    except CoachError as exc:
        logger.warning("WebSocket authentication skipped: %s", exc.detail)
        session_store.destroy(state.sid)
        return None
    return claims["sub"] if claims["sub"] == state.user_id else None


def _parse_frame(raw: str) -> dict:
    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return {"type": "chat", "message": raw}
    if isinstance(payload, dict):
        return payload
    return {"type": "chat", "message": payload}


async def _send_part(websocket: WebSocket, text: str) -> None:
    await websocket.send_json({"type": "part", "user": "AI", "message": text})


async def _send_end(websocket: WebSocket) -> None:
    await websocket.send_json({"type": "end", "user": "AI"})


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, client: CompletionClient = Depends(get_completion_client)):
    """
    Frames in:  {"type": "context", ...} once, then {"type": "chat", "message": ...}.
    Frames out: {"type": "part", "message": chunk} ... {"type": "end"}.
    """
    await websocket.accept()
    user_id = _socket_user_id(websocket)
    memory_key = user_id or f"socket:{id(websocket)}"
    client_ip = websocket.client.host if websocket.client else "unknown"
    pending_context: dict = {}
    logger.info("[Socket] Client connected: %s", memory_key)

    try:
        while True:
            frame = _parse_frame(await websocket.receive_text())

            if frame.get("type") == "context":
                pending_context = {name: frame.get(name) for name in _CONTEXT_FIELDS if frame.get(name) is not None}
                continue

            # The initial context only personalizes the very first reply
            fields = {**pending_context, **{k: v for k, v in frame.items() if v is not None}}
            pending_context = {}

            try:
                message = _clean_message(fields.get("message"))
            except ValidationError as exc:
                await _send_part(websocket, exc.detail)
                await _send_end(websocket)
                continue

            if not chat_limiter.check(client_ip):
                await _send_part(websocket, "Too many requests. Please slow down before sending another message.")
                await _send_end(websocket)
                continue

            prompt, generation = _prepare(message, fields, user_id, exchange_memory.context_for(memory_key))
            chunks: list[str] = []
            stream = stream_completion(client, prompt, generation)
            try:
                async for chunk in stream:
                    chunks.append(chunk)
                    await _send_part(websocket, chunk)
            except ModelUnavailable:
                await _send_part(websocket, FALLBACK_REPLY)
            finally:
                await stream.aclose()

            if chunks:
                exchange_memory.remember(memory_key, message, "".join(chunks))
            await _send_end(websocket)
            logger.info("[Socket] Completed response to %s. Bytes=%d", memory_key, len("".join(chunks)))
    except WebSocketDisconnect:
        logger.info("[Socket] Client disconnected: %s", memory_key)
    finally:
        if user_id is None:
            exchange_memory.forget(memory_key)
