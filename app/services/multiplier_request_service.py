"""
Multiplier request workflow.

A follower asks to become a multiplier (team leader) in a campaign; an
administrator approves or rejects the request. Requests move one way only:

    pending -> approved
    pending -> rejected

Each use case receives its repository through the constructor; routes build
them through the dependency functions in app.routes.dependencies.
"""

from datetime import UTC, datetime

from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.multiplier_request_domain import (
    MultiplierRequest,
    NewMultiplierRequest,
    ReviewDecision,
)
from app.repositories.multiplier_request_repository import MultiplierRequestRepository
from app.services.errors import (
    AlreadyApproved,
    DuplicateRequest,
    InvalidState,
    NotFound,
)

logger = get_logger(__name__)


def _not_pending_error(request_id: str, current_status: str) -> InvalidState:
    return InvalidState(
        f"Request {request_id} was already {current_status}",
        current_status=current_status,
    )


class RequestMultiplierUseCase:
    """Create a pending request unless one is open or already approved."""

    def __init__(self, repository: MultiplierRequestRepository):
        self.repository = repository

    async def execute(self, request: NewMultiplierRequest) -> MultiplierRequest:
        existing = await self.repository.find_latest_for_user(
            request.user_id, request.campaign_id
        )

        if existing and existing.status == "pending":
            raise DuplicateRequest("User already has a pending multiplier request")

        if existing and existing.status == "approved":
            raise AlreadyApproved("User is already a multiplier in this campaign")

        try:
            created = await self.repository.create(request)
        except DatabaseError as e:
            # Partial unique index on pending rows; a concurrent create won
            if e.is_unique_violation:
                raise DuplicateRequest(
                    "User already has a pending multiplier request"
                ) from e
            raise

        logger.info(
            "Multiplier request created",
            request_id=created.id,
            user_id=created.user_id,
            campaign_id=created.campaign_id,
            previous_status=existing.status if existing else None,
        )
        return created


class _ReviewMultiplierRequestUseCase:
    """Shared transition logic for approve and reject."""

    decision_status: str = ""

    def __init__(self, repository: MultiplierRequestRepository):
        self.repository = repository

    async def _review(
        self,
        request_id: str,
        reviewer_id: str,
        reviewer_name: str,
        rejection_reason: str | None = None,
    ) -> MultiplierRequest:
        current = await self.repository.get(request_id)
        if not current:
            raise NotFound("Multiplier request not found")

        if not current.is_pending:
            raise _not_pending_error(request_id, current.status)

        decision = ReviewDecision(
            status=self.decision_status,
            reviewed_at=datetime.now(UTC),
            reviewed_by=reviewer_id,
            reviewer_name=reviewer_name,
            rejection_reason=rejection_reason,
        )
        updated = await self.repository.apply_review(request_id, decision)

        if updated is None:
            # Lost the race with another reviewer between read and write
            latest = await self.repository.get(request_id)
            if not latest:
                raise NotFound("Multiplier request not found")
            logger.warning(
                "Concurrent review detected",
                request_id=request_id,
                attempted=self.decision_status,
                current_status=latest.status,
            )
            raise _not_pending_error(request_id, latest.status)

        logger.info(
            "Multiplier request reviewed",
            request_id=request_id,
            status=updated.status,
            reviewer_id=reviewer_id,
            user_id=updated.user_id,
            campaign_id=updated.campaign_id,
        )
        return updated


class ApproveMultiplierRequestUseCase(_ReviewMultiplierRequestUseCase):
    decision_status = "approved"

    async def execute(
        self, request_id: str, reviewer_id: str, reviewer_name: str
    ) -> MultiplierRequest:
        return await self._review(request_id, reviewer_id, reviewer_name)


class RejectMultiplierRequestUseCase(_ReviewMultiplierRequestUseCase):
    decision_status = "rejected"

    async def execute(
        self,
        request_id: str,
        reviewer_id: str,
        reviewer_name: str,
        rejection_reason: str | None = None,
    ) -> MultiplierRequest:
        reason = rejection_reason.strip() if rejection_reason else None
        return await self._review(request_id, reviewer_id, reviewer_name, reason or None)


class GetMultiplierRequestsUseCase:
    """Reviewer inbox: pending requests of a campaign."""

    def __init__(self, repository: MultiplierRequestRepository):
        self.repository = repository

    async def execute(
        self, campaign_id: str, reviewer_id: str | None = None
    ) -> list[MultiplierRequest]:
        requests = await self.repository.list_for_campaign(campaign_id, reviewer_id)
        return [request for request in requests if request.is_pending]


class GetMultiplierRequestUseCase:
    """Single request lookups, by id or by (user, campaign)."""

    def __init__(self, repository: MultiplierRequestRepository):
        self.repository = repository

    async def by_id(self, request_id: str) -> MultiplierRequest:
        request = await self.repository.get(request_id)
        if not request:
            raise NotFound("Multiplier request not found")
        return request

    async def for_user(self, user_id: str, campaign_id: str) -> MultiplierRequest:
        request = await self.repository.find_latest_for_user(user_id, campaign_id)
        if not request:
            raise NotFound("Multiplier request not found")
        return request
