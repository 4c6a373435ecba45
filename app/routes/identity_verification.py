"""
identity_verification.py
------------------------
Purpose:
    Endpoints the identity verification provider (Didit) and the web client
    use to run a verification session.

Usage:
    1. POST /identity-verification/start - Open a provider session for a user
    2. POST /identity-verification/callback - Provider webhook with the outcome,
       signed with DIDIT_WEBHOOK_SECRET (X-Signature)
    3. GET  /identity-verification/callback?session_id&status - Browser
       redirect at the end of a session; applies the outcome and sends the
       user back to the dashboard
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from app.auth.webhook_signature import require_provider_signature
from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.api.identity_verification_api import (
    StartVerificationBody,
    StartVerificationResponse,
    VerificationCallbackBody,
    VerificationCallbackResponse,
)
from app.routes.dependencies import get_callback_handler, get_start_verification_use_case
from app.services.errors import ValidationError
from app.services.identity_verification_service import (
    IdentityVerificationCallbackHandler,
    StartIdentityVerificationUseCase,
    VerificationCallback,
)

router = APIRouter(prefix="/identity-verification", tags=["identity-verification"])
logger = get_logger(__name__)


def _dashboard_redirect(verification: str) -> RedirectResponse:
    url = f"{settings.dashboard_url()}?{urlencode({'verification': verification})}"
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/start", response_model=StartVerificationResponse)
async def start_verification(
    body: StartVerificationBody,
    use_case: StartIdentityVerificationUseCase = Depends(get_start_verification_use_case),
):
    started = await use_case.execute(body.user_id)
    return StartVerificationResponse(
        verification_session_id=started.verification_session_id,
        verification_url=started.verification_url,
        status=started.status,
    )


@router.post(
    "/callback",
    response_model=VerificationCallbackResponse,
    dependencies=[Depends(require_provider_signature)],
)
async def verification_callback(
    body: VerificationCallbackBody,
    handler: IdentityVerificationCallbackHandler = Depends(get_callback_handler),
):
    """
    Apply a provider outcome to the user owning the workflow.

    Raises:
        400: workflowId or status missing, malformed body
        401: Missing or invalid provider signature
        404: No user owns this workflow
        500: Store unavailable
    """
    outcome = await handler.handle(
        VerificationCallback(
            workflow_id=body.workflow_id,
            status=body.status,
            user_id=body.user_id,
            event_id=body.event_id,
            error=body.error,
        )
    )
    return VerificationCallbackResponse(
        success=outcome.success,
        message=outcome.message,
        user_id=outcome.user_id,
        status=outcome.status,
    )


@router.get("/callback")
async def verification_redirect(
    session_id: str | None = Query(None),
    verification_session_id: str | None = Query(None, alias="verificationSessionId"),
    provider_status: str | None = Query(None, alias="status"),
    handler: IdentityVerificationCallbackHandler = Depends(get_callback_handler),
):
    workflow_id = session_id or verification_session_id
    if not workflow_id:
        raise ValidationError("session_id is required")
    if not provider_status:
        raise ValidationError("status is required")

    try:
        outcome = await handler.handle(
            VerificationCallback(workflow_id=workflow_id, status=provider_status)
        )
    except Exception as e:
        logger.error(
            "Verification redirect could not be applied",
            workflow_id=workflow_id,
            provider_status=provider_status,
            error=str(e),
            error_type=type(e).__name__,
        )
        return _dashboard_redirect("error")

    return _dashboard_redirect("success" if outcome.status == "verified" else "failed")
