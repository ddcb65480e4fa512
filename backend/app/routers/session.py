"""Speller session endpoints: start, capture, reset, and live preview."""

import asyncio
import base64
import io
import logging
import os
import time

import numpy as np
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from PIL import Image

from schemas.session import CaptureRequest, SessionState, SessionView
from schemas.ws_messages import PreviewFrame, PreviewStatus
from services.errors import (
    ActionUnavailable,
    CameraNotReady,
    ClassificationError,
    InvalidLetterCount,
    ModelNotReady,
)
from services.speller import SpellerSession, get_session

logger = logging.getLogger(__name__)

router = APIRouter()

PREVIEW_FPS = float(os.environ.get("POPIT_PREVIEW_FPS", "10"))
STATS_INTERVAL = 100  # Log preview stats every N frames


def _encode_jpeg(frame: np.ndarray, quality: int = 80) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(frame).save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def _error_with_view(session: SpellerSession, status_code: int, exc: Exception) -> HTTPException:
    """HTTP error whose detail still carries the session view and its notices."""
    view = session.view()
    return HTTPException(
        status_code=status_code,
        detail={"error": str(exc), "session": view.model_dump(mode="json")},
    )


@router.get("/session", response_model=SessionView)
async def session_view(session: SpellerSession = Depends(get_session)) -> SessionView:
    """Return the current session state; pending notices stay queued."""
    return session.view(drain=False)


@router.post("/session/start", response_model=SessionView)
async def start(session: SpellerSession = Depends(get_session)) -> SessionView:
    """Acquire the camera; failures are reported through the view's notices."""
    try:
        await session.start()
    except ActionUnavailable as exc:
        raise _error_with_view(session, 409, exc)
    return session.view()


@router.post("/session/capture", response_model=SessionView)
async def capture(
    req: CaptureRequest, session: SpellerSession = Depends(get_session)
) -> SessionView:
    """Freeze the preview and spell the word on it."""
    try:
        await session.capture(req.letter_count)
    except InvalidLetterCount as exc:
        raise _error_with_view(session, 422, exc)
    except CameraNotReady as exc:
        raise _error_with_view(session, 409, exc)
    except ModelNotReady as exc:
        raise _error_with_view(session, 503, exc)
    except ClassificationError as exc:
        raise _error_with_view(session, 500, exc)
    except Exception:
        logger.exception("Capture failed")
        raise HTTPException(status_code=500, detail="Capture failed")
    return session.view()


@router.post("/session/reset", response_model=SessionView)
async def reset(session: SpellerSession = Depends(get_session)) -> SessionView:
    """Discard the captured word and restart the camera."""
    try:
        await session.reset()
    except ActionUnavailable as exc:
        raise _error_with_view(session, 409, exc)
    return session.view()


@router.get("/session/still.jpg")
async def still_image(session: SpellerSession = Depends(get_session)) -> Response:
    """Return the captured frame as JPEG."""
    if session.state is not SessionState.FROZEN or session.still is None:
        raise HTTPException(status_code=404, detail="No captured image")
    data = await asyncio.to_thread(_encode_jpeg, session.still)
    return Response(content=data, media_type="image/jpeg")


@router.websocket("/ws/preview")
async def preview(websocket: WebSocket, session: SpellerSession = Depends(get_session)) -> None:
    """Stream live camera frames while ready, and the still once frozen."""
    await websocket.accept()
    logger.info("Preview connected")

    frame_count = 0
    last_sent: SessionState | None = None
    interval = 1.0 / PREVIEW_FPS

    try:
        while True:
            ts = time.time()
            state = session.state

            if state is SessionState.READY and session.camera.ready:
                try:
                    frame = await asyncio.to_thread(session.camera.read)
                except CameraNotReady:
                    # Stream was released between the check and the read.
                    frame = None
                if frame is not None:
                    msg = await asyncio.to_thread(_preview_message, frame, ts)
                    await websocket.send_text(msg.model_dump_json())
                    last_sent = state
                    frame_count += 1
                    if frame_count % STATS_INTERVAL == 0:
                        logger.info("Preview frames=%d", frame_count)

            elif state is SessionState.FROZEN and session.still is not None:
                if last_sent is not state:
                    msg = await asyncio.to_thread(_preview_message, session.still, ts)
                    await websocket.send_text(msg.model_dump_json())
                    last_sent = state

            elif last_sent is not state:
                status = PreviewStatus(state=state.value, ts=ts)
                await websocket.send_text(status.model_dump_json())
                last_sent = state

            # Paces the stream and notices the client going away.
            try:
                await asyncio.wait_for(websocket.receive_text(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    except WebSocketDisconnect:
        logger.info("Preview disconnected: frames=%d", frame_count)
    except Exception:
        logger.exception("Preview error")
        await websocket.close(code=1011)


def _preview_message(frame: np.ndarray, ts: float) -> PreviewFrame:
    height, width = frame.shape[:2]
    return PreviewFrame(
        jpgBase64=base64.b64encode(_encode_jpeg(frame)).decode("ascii"),
        width=width,
        height=height,
        ts=ts,
    )
