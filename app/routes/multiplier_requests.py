"""
multiplier_requests.py
----------------------
Purpose:
    Dashboard endpoints for the multiplier request workflow.

Architecture:
    - API layer: auth, role checks, request parsing
    - Use cases (app.services.multiplier_request_service): state transitions,
      raising ConnectServiceError subclasses
    - Errors become JSON responses in app.routes.error_handlers

Usage:
    1. POST /dashboard/multiplier-request - Follower requests multiplier role
    2. GET  /dashboard/multiplier-request?userId&campaignId - Latest request of a user
    3. GET  /dashboard/multiplier-requests?campaignId&reviewerId - Pending inbox (admins)
    4. GET  /dashboard/multiplier-requests/{id} - Single request
    5. POST /dashboard/multiplier-requests/{id}/approve - Approve (admins)
    6. POST /dashboard/multiplier-requests/{id}/reject - Reject (admins)
"""

from fastapi import APIRouter, Depends, Query, status

from app.auth.verify import CurrentUser, current_user, require_admin, require_follower
from app.infrastructure.observability.logging import get_logger
from app.models.api.multiplier_request_api import (
    CreateMultiplierRequestBody,
    RejectMultiplierRequestBody,
)
from app.models.domain.multiplier_request_domain import MultiplierRequest, NewMultiplierRequest
from app.routes.dependencies import (
    get_approve_use_case,
    get_list_use_case,
    get_lookup_use_case,
    get_reject_use_case,
    get_request_multiplier_use_case,
)
from app.services.errors import ValidationError
from app.services.multiplier_request_service import (
    ApproveMultiplierRequestUseCase,
    GetMultiplierRequestsUseCase,
    GetMultiplierRequestUseCase,
    RejectMultiplierRequestUseCase,
    RequestMultiplierUseCase,
)

router = APIRouter(prefix="/dashboard", tags=["multiplier-requests"])
logger = get_logger(__name__)


@router.post(
    "/multiplier-request",
    response_model=MultiplierRequest,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_multiplier_request(
    body: CreateMultiplierRequestBody,
    user: CurrentUser = Depends(require_follower),
    use_case: RequestMultiplierUseCase = Depends(get_request_multiplier_use_case),
):
    """
    Request the multiplier role in a campaign.

    Raises:
        400: campaignId missing
        401: Missing or invalid token
        403: Caller is not a follower
        409: Pending request exists, or caller is already a multiplier
    """
    return await use_case.execute(
        NewMultiplierRequest(
            user_id=user.user_id,
            user_name=user.name,
            user_phone_number=user.phone_number,
            campaign_id=body.campaign_id,
            campaign_name=body.campaign_name,
        )
    )


@router.get(
    "/multiplier-request",
    response_model=MultiplierRequest,
    response_model_exclude_none=True,
)
async def get_multiplier_request_for_user(
    user_id: str | None = Query(None, alias="userId"),
    campaign_id: str | None = Query(None, alias="campaignId"),
    _user: CurrentUser = Depends(current_user),
    use_case: GetMultiplierRequestUseCase = Depends(get_lookup_use_case),
):
    if not user_id or not campaign_id:
        raise ValidationError("userId and campaignId are required")

    return await use_case.for_user(user_id, campaign_id)


@router.get(
    "/multiplier-requests",
    response_model=list[MultiplierRequest],
    response_model_exclude_none=True,
)
async def list_pending_multiplier_requests(
    campaign_id: str | None = Query(None, alias="campaignId"),
    reviewer_id: str | None = Query(None, alias="reviewerId"),
    user: CurrentUser = Depends(require_admin),
    use_case: GetMultiplierRequestsUseCase = Depends(get_list_use_case),
):
    """Pending requests of a campaign, for the reviewers' inbox."""
    if not campaign_id:
        raise ValidationError("campaignId is required")

    requests = await use_case.execute(campaign_id, reviewer_id)

    logger.info(
        "Pending multiplier requests listed",
        campaign_id=campaign_id,
        reviewer_id=reviewer_id,
        requested_by=user.user_id,
        count=len(requests),
    )
    return requests


@router.get(
    "/multiplier-requests/{request_id}",
    response_model=MultiplierRequest,
    response_model_exclude_none=True,
)
async def get_multiplier_request(
    request_id: str,
    _user: CurrentUser = Depends(current_user),
    use_case: GetMultiplierRequestUseCase = Depends(get_lookup_use_case),
):
    return await use_case.by_id(request_id)


@router.post(
    "/multiplier-requests/{request_id}/approve",
    response_model=MultiplierRequest,
    response_model_exclude_none=True,
)
async def approve_multiplier_request(
    request_id: str,
    user: CurrentUser = Depends(require_admin),
    use_case: ApproveMultiplierRequestUseCase = Depends(get_approve_use_case),
):
    """
    Approve a pending request.

    Raises:
        403: Caller is not an admin
        404: Request not found
        409: Request is no longer pending
    """
    return await use_case.execute(request_id, user.user_id, user.name)


@router.post(
    "/multiplier-requests/{request_id}/reject",
    response_model=MultiplierRequest,
    response_model_exclude_none=True,
)
async def reject_multiplier_request(
    request_id: str,
    body: RejectMultiplierRequestBody | None = None,
    user: CurrentUser = Depends(require_admin),
    use_case: RejectMultiplierRequestUseCase = Depends(get_reject_use_case),
):
    reason = body.rejection_reason if body else None
    return await use_case.execute(request_id, user.user_id, user.name, reason)
