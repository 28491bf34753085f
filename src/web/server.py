"""Async HTTP server for the conversation API, share pages and stored audio.

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop.  Collaborators
are attached to the application under typed keys, so tests can build an app
around stores rooted in a temporary directory.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from aiohttp import web

from src.characters.catalog import CharacterCatalog
from src.chat.resolver import ResponseResolver
from src.chat.view import ConversationView, Turn, ViewRegistry
from src.config import settings
from src.conversations.sessions import SessionStore
from src.conversations.store import ConversationStore
from src.errors import ShareNotFoundError, TranscriptionError
from src.sharing.store import ShareStore, share_path
from src.speech.client import SpeechClient
from src.storage.bucket import MAX_OBJECT_SIZE
from src.web.pages import render_conversation, render_not_found, render_share, render_unavailable

logger = logging.getLogger(__name__)

CATALOG = web.AppKey("catalog", CharacterCatalog)
RESOLVER = web.AppKey("resolver", ResponseResolver)
STORE = web.AppKey("store", ConversationStore)
SESSIONS = web.AppKey("sessions", SessionStore)
SHARES = web.AppKey("shares", ShareStore)
SPEECH = web.AppKey("speech", SpeechClient)
VIEWS = web.AppKey("views", ViewRegistry)

TRANSCRIBE_NOTICE = "Sorry, I couldn't hear that clearly. Please try recording again."


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_json(request: web.Request) -> dict[str, Any] | None:
    """Parse a JSON object body; None if it is not one."""
    try:
        payload = await request.json()
    except Exception:
        return None
    return payload if isinstance(payload, dict) else None


def _encode_audio(audio: bytes | None) -> str | None:
    return base64.b64encode(audio).decode("ascii") if audio else None


def _turn_payload(view: ConversationView, turn: Turn) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "session_id": view.session_id,
        "text": turn.text,
        "provenance": turn.provenance,
        "audio_url": turn.audio_url,
        "audio": _encode_audio(turn.audio),
        "audio_id": turn.artifact.id if turn.artifact else None,
        "autoplay": turn.artifact is not None and view.playback.current is turn.artifact,
        "suggestions": turn.suggestions,
    }
    if turn.record_id:
        payload["conversation_url"] = (
            f"/conversation/{view.character.slug}/{turn.record_id}"
        )
    return payload


def _playback_payload(view: ConversationView) -> dict[str, Any]:
    playback = view.playback
    return {
        "state": playback.state,
        "current": playback.current.id if playback.current else None,
        "pending": playback.pending.id if playback.pending else None,
        "enabled": playback.enabled,
    }


# -- API routes ----------------------------------------------------------------


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


async def _list_characters(request: web.Request) -> web.Response:
    """GET /api/characters — the roster."""
    catalog = request.app[CATALOG]
    return web.json_response({"characters": [c.summary() for c in catalog.all()]})


async def _open_session(request: web.Request) -> web.Response:
    """POST /api/characters/{character_id}/sessions — start talking to someone."""
    character = request.app[CATALOG].find(request.match_info["character_id"])
    if character is None:
        return _error("unknown character", 404)

    payload: dict[str, Any] = {}
    if request.can_read_body:
        payload = await _read_json(request)
        if payload is None:
            return _error("invalid JSON", 400)

    views = request.app[VIEWS]
    session_id = str(payload.get("session_id") or "") or None
    if session_id and views.find(session_id) is not None:
        return _error("session already open", 409)

    view = ConversationView(
        character,
        session_id,
        device_info=payload.get("device_info") or request.headers.get("User-Agent", ""),
        resolver=request.app[RESOLVER],
        sessions=request.app[SESSIONS],
        speech=request.app[SPEECH],
    )
    await views.add(view)
    turn = await view.open()
    logger.info("Opened session %s with %s", view.session_id, character.name)

    body = _turn_payload(view, turn)
    body["character"] = character.summary()
    return web.json_response(body, status=201)


async def _ask(request: web.Request) -> web.Response:
    """POST /api/sessions/{session_id}/ask — one question, one answer."""
    view = request.app[VIEWS].find(request.match_info["session_id"])
    if view is None:
        return _error("unknown session", 404)

    payload = await _read_json(request)
    if payload is None:
        return _error("invalid JSON", 400)
    question = payload.get("question")
    if not isinstance(question, str) or not question.strip():
        return _error("question must not be empty", 400)

    turn = await view.ask(question)
    if turn is None:
        return _error("session closed", 410)
    return web.json_response(_turn_payload(view, turn))


async def _playback(request: web.Request) -> web.Response:
    """POST /api/sessions/{session_id}/playback — what the client's player just did."""
    view = request.app[VIEWS].find(request.match_info["session_id"])
    if view is None:
        return _error("unknown session", 404)

    payload = await _read_json(request)
    if payload is None:
        return _error("invalid JSON", 400)
    action = payload.get("action")
    audio_id = payload.get("audio_id")
    if not isinstance(action, str) or (audio_id is not None and not isinstance(audio_id, str)):
        return _error("action is required", 400)

    try:
        await view.control_playback(action, audio_id)
    except ValueError as exc:
        return _error(str(exc), 400)
    return web.json_response(_playback_payload(view))


async def _close_session(request: web.Request) -> web.Response:
    """DELETE /api/sessions/{session_id} — the user left the conversation."""
    closed = await request.app[VIEWS].close(request.match_info["session_id"])
    if not closed:
        return _error("unknown session", 404)
    return web.json_response({"ok": True})


async def _transcribe(request: web.Request) -> web.Response:
    """POST /api/transcribe — raw recorded audio in, text out."""
    audio = await request.read()
    filename = request.query.get("filename", "recording.webm")
    try:
        text = await request.app[SPEECH].transcribe(audio, filename=filename)
    except TranscriptionError as exc:
        logger.warning("Transcription failed: %s", exc)
        return _error(TRANSCRIBE_NOTICE, 502)
    return web.json_response({"text": text})


async def _create_share(request: web.Request) -> web.Response:
    """POST /api/shares — freeze one exchange behind a link."""
    payload = await _read_json(request)
    if payload is None:
        return _error("invalid JSON", 400)

    character = request.app[CATALOG].find(str(payload.get("character_id", "")))
    if character is None:
        return _error("unknown character", 404)

    question = payload.get("question")
    response = payload.get("response")
    if not isinstance(question, str) or not isinstance(response, str):
        return _error("question and response are required", 400)

    try:
        share_id = await request.app[SHARES].create_share(
            character.slug, question, response, payload.get("audio_url") or None
        )
    except ValueError as exc:
        return _error(str(exc), 400)

    path = share_path(character.slug, share_id)
    return web.json_response(
        {"share_id": share_id, "path": path, "url": settings.get_public_base_url() + path},
        status=201,
    )


# -- Pages and audio -------------------------------------------------------------


async def _share_page(request: web.Request) -> web.Response:
    """GET /share/{character_id}/{share_id} — one shared exchange."""
    character_id = request.match_info["character_id"].lower()
    try:
        record = await request.app[SHARES].resolve_share(request.match_info["share_id"])
    except ShareNotFoundError:
        record = None
    except Exception:
        logger.exception("Loading share %s failed", request.match_info["share_id"])
        return web.Response(text=render_unavailable(), status=503, content_type="text/html")
    if record is None or record.character_id != character_id:
        return web.Response(text=render_not_found("shared message"), status=404, content_type="text/html")

    character = request.app[CATALOG].find(character_id)
    return web.Response(text=render_share(record, character), content_type="text/html")


async def _conversation_page(request: web.Request) -> web.Response:
    """GET /conversation/{character_id}/{record_id} — one cached exchange."""
    character_id = request.match_info["character_id"]
    record = await request.app[STORE].get_by_id(character_id, request.match_info["record_id"])
    if record is None:
        return web.Response(text=render_not_found("conversation"), status=404, content_type="text/html")

    character = request.app[CATALOG].find(character_id)
    return web.Response(text=render_conversation(record, character), content_type="text/html")


async def _audio(request: web.Request) -> web.StreamResponse:
    """GET /audio/{character_id}/{filename} — stored answer audio."""
    bucket = request.app[STORE].bucket
    key = f"audio/{request.match_info['character_id']}/{request.match_info['filename']}"
    try:
        path = bucket.path_for(key)
    except ValueError:
        raise web.HTTPNotFound from None
    if not path.is_file():
        raise web.HTTPNotFound
    return web.FileResponse(path, headers={"Content-Type": "audio/mpeg"})


def _create_web_app(
    *,
    catalog: CharacterCatalog | None = None,
    resolver: ResponseResolver | None = None,
    sessions: SessionStore | None = None,
    shares: ShareStore | None = None,
    speech: SpeechClient | None = None,
    views: ViewRegistry | None = None,
) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(client_max_size=MAX_OBJECT_SIZE)
    app[CATALOG] = catalog or CharacterCatalog.get()
    app[RESOLVER] = resolver or ResponseResolver.get()
    app[STORE] = app[RESOLVER].store
    app[SESSIONS] = sessions or SessionStore.get()
    app[SHARES] = shares or ShareStore.get()
    app[SPEECH] = speech or app[RESOLVER].speech
    app[VIEWS] = views if views is not None else ViewRegistry()

    app.router.add_get("/health", _health)
    app.router.add_get("/api/characters", _list_characters)
    app.router.add_post("/api/characters/{character_id}/sessions", _open_session)
    app.router.add_post("/api/sessions/{session_id}/ask", _ask)
    app.router.add_post("/api/sessions/{session_id}/playback", _playback)
    app.router.add_delete("/api/sessions/{session_id}", _close_session)
    app.router.add_post("/api/transcribe", _transcribe)
    app.router.add_post("/api/shares", _create_share)
    app.router.add_get("/share/{character_id}/{share_id}", _share_page)
    app.router.add_get("/conversation/{character_id}/{record_id}", _conversation_page)
    app.router.add_get("/audio/{character_id}/{filename}", _audio)

    app.on_shutdown.append(_on_shutdown)
    return app


async def _on_shutdown(app: web.Application) -> None:
    await app[VIEWS].close_all()
    await app[RESOLVER].wait_pending()


class WebServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, host: str | None = None, port: int | None = None) -> None:
        self.host = host or settings.web_host
        self.port = port or settings.web_port
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Start listening for browser clients."""
        if not settings.model_configured():
            logger.warning("ANTHROPIC_API_KEY empty — characters will use canned replies only")
        if not settings.speech_configured():
            logger.warning("OPENAI_API_KEY empty — answers will have no audio")

        app = _create_web_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(
            "Web server listening on %s:%d (%d characters)",
            self.host,
            self.port,
            len(app[CATALOG].all()),
        )

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Web server stopped")
