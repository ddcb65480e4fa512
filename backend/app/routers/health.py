"""Health check endpoint."""

from fastapi import APIRouter, Depends

from services.speller import SpellerSession, get_session

router = APIRouter()


@router.get("/healthz")
async def healthz(session: SpellerSession = Depends(get_session)) -> dict[str, str]:
    """Return service health and whether the letter model loaded."""
    return {"status": "ok", "model": session.model_status.value}
