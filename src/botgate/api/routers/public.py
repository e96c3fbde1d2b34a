"""Public-facing status routes."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from botgate.config import SERVICE_NAME, SERVICE_VERSION

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    fallbackMode: str
    config: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
@router.get("/", response_model=HealthResponse, include_in_schema=False)
def health(request: Request) -> HealthResponse:
    """Health check endpoint. Reports which settings are present, never their values."""
    settings = request.app.state.settings
    return HealthResponse(
        status="ok",
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        fallbackMode=settings.fallback_mode,
        config=settings.presence_flags(),
    )
