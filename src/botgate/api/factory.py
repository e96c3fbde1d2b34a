"""FastAPI application factory."""

from collections.abc import Callable

import requests
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from botgate.config import SERVICE_VERSION, Settings, load_settings
from botgate.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from botgate.observability.logging import configure_logging, get_logger
from botgate.relay.dispatcher import WebhookRelay

from .routers import public
from .routes import templates, webhooks_whatsapp

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    relay: WebhookRelay | None = None,
    http_post: Callable[..., requests.Response] | None = None,
    http_get: Callable[..., requests.Response] | None = None,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Explicit settings. If None, loaded from the environment.
        relay: Prebuilt relay (tests). If None, built from settings.
        http_post: Outbound POST callable for the relay. Defaults to requests.post.
        http_get: Outbound GET callable for the template proxy. Defaults to requests.get.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = load_settings()

    configure_logging(settings.log_level)

    if relay is None:
        relay = WebhookRelay.from_settings(settings, http_post=http_post or requests.post)

    app = FastAPI(
        title="botgate",
        version=SERVICE_VERSION,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.relay = relay
    app.state.http_get = http_get or requests.get

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER],
    )

    app.include_router(public.router)
    app.include_router(webhooks_whatsapp.router)
    app.include_router(templates.router)

    logger.info(
        "app created",
        extra={
            "extra_fields": {
                "fallback_mode": settings.fallback_mode,
                **{k: str(v).lower() for k, v in settings.presence_flags().items()},
            }
        },
    )
    return app
