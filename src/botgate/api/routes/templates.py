"""Template listing proxy.

Lets the main application list a business account's message templates
with its own provider token, passed as ``Authorization: Bearer <token>``.
"""

import asyncio
from typing import Any

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from botgate.observability.logging import get_logger
from botgate.observability.redaction import safe_log_context
from botgate.whatsapp.meta_templates import TemplateFetchError, fetch_message_templates

router = APIRouter(tags=["templates"])

logger = get_logger(__name__)


def _bearer_token(authorization: str | None) -> str | None:
    """Token from an ``Authorization: Bearer <token>`` header, or None."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def _error(status_code: int, error: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error})


@router.get("/templates")
@router.get("/templates/")
async def list_templates_without_account(
    authorization: str | None = Header(None),
) -> JSONResponse:
    if _bearer_token(authorization) is None:
        return _error(401, "Authorization token required")
    return _error(400, "WhatsApp Business Account ID required")


@router.get("/templates/{business_account_id}")
async def list_templates(
    business_account_id: str,
    request: Request,
    authorization: str | None = Header(None),
) -> JSONResponse:
    """Proxy the provider's template list for ``business_account_id``.

    Returns:
        200 with the provider JSON verbatim.
        401 if the bearer token is missing or malformed.
        400 if the account id is blank.
        Provider status with ``{"error": <provider body>}`` on provider error.
        502 if the provider could not be reached.
    """
    token = _bearer_token(authorization)
    if token is None:
        return _error(401, "Authorization token required")

    business_account_id = business_account_id.strip()
    if not business_account_id:
        return _error(400, "WhatsApp Business Account ID required")

    settings = request.app.state.settings

    try:
        body = await asyncio.to_thread(
            fetch_message_templates,
            business_account_id,
            token,
            api_version=settings.graph_api_version,
            base_url=settings.graph_base_url,
            http_get=request.app.state.http_get,
        )
    except TemplateFetchError as e:
        if e.status_code is None:
            return _error(502, "Failed to reach WhatsApp API")
        logger.info(
            "template proxy mirrored provider error",
            extra={"extra_fields": safe_log_context(status_code=e.status_code)},
        )
        return _error(e.status_code, e.body)

    return JSONResponse(status_code=200, content=body)
