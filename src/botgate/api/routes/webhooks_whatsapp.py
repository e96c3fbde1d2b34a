"""WhatsApp webhook routes.

GET answers the provider's subscription handshake. POST receives event
batches and hands them to the WebhookRelay on app.state.

Security:
- Logs contain NO phone numbers and NO message text
- The verify token is never logged
"""

import asyncio
from typing import Any

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse

from botgate.observability.correlation import get_correlation_id
from botgate.observability.logging import get_logger
from botgate.observability.redaction import safe_log_context
from botgate.whatsapp.meta_adapter import UnexpectedObjectError

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)

ACK_BODY = "EVENT_RECEIVED"
ERROR_BODY = "Error processing webhook"


@router.get("/webhook")
async def webhook_verify(
    request: Request,
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
) -> Response:
    """Webhook subscription handshake.

    Returns:
        200 with hub.challenge verbatim if mode is "subscribe" and the token matches.
        403 with an empty body on mismatch.
        200 JSON liveness body if mode or token is absent or empty.
    """
    if not hub_mode or not hub_verify_token:
        return JSONResponse({"status": "ok", "message": "Webhook is running"})

    expected_token = request.app.state.settings.verify_token

    if hub_mode == "subscribe" and expected_token and hub_verify_token == expected_token:
        logger.info(
            "webhook verification successful",
            extra={"extra_fields": safe_log_context(hub_mode=hub_mode)},
        )
        return Response(status_code=200, content=hub_challenge or "", media_type="text/plain")

    logger.warning(
        "webhook verification failed",
        extra={
            "extra_fields": safe_log_context(
                hub_mode=hub_mode,
                token_configured=bool(expected_token),
            )
        },
    )
    return Response(status_code=403)


@router.post("/webhook")
async def webhook_receive(request: Request) -> Response:
    """Receive a batch of WhatsApp events.

    Every contained event is handled before responding; per-event failures
    are logged by the relay and never change the status code.

    Returns:
        200 "EVENT_RECEIVED" once the batch was processed (even partially).
        404 if the body is not a business-account event.
        500 if the body cannot be parsed or dispatch fails unexpectedly.
    """
    correlation_id = get_correlation_id()

    try:
        payload: Any = await request.json()
    except Exception:
        logger.error(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=500, content=ERROR_BODY, media_type="text/plain")

    relay = request.app.state.relay

    try:
        await asyncio.to_thread(relay.dispatch, payload)
    except UnexpectedObjectError as e:
        logger.warning(
            "webhook ignored: unexpected object",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    object_type=e.object_type or "missing",
                )
            },
        )
        return Response(status_code=404)
    except Exception:
        logger.exception(
            "webhook processing failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=500, content=ERROR_BODY, media_type="text/plain")

    return Response(status_code=200, content=ACK_BODY, media_type="text/plain")
