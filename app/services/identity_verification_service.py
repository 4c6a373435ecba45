"""
Identity verification: starting provider sessions and applying their outcomes.

Outcome handling (IdentityVerificationCallbackHandler):
    1. Find the user whose current workflow id matches the callback.
    2. Map the provider status to ours; unknown statuses are acknowledged
       but not written.
    3. Bump or reset the attempt counter and lock the user out after
       IDENTITY_VERIFICATION_MAX_ATTEMPTS failures.
    4. Write everything in one statement, conditional on the state read in
       step 1; on a conflict re-read and recompute.

When the provider sends an event id, the (workflow id, event id) pair is
claimed in Redis before step 4 so a redelivered event is not counted twice.
"""

from dataclasses import dataclass
from typing import Protocol

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.identity_verification_domain import (
    UserVerificationState,
    VerificationStatus,
    compute_verification_update,
    map_provider_status,
)
from app.repositories.user_verification_repository import UserVerificationRepository
from app.services.errors import Forbidden, NotFound, Unexpected, ValidationError
from app.services.identity_provider_client import IdentityProviderClient

logger = get_logger(__name__)

IDEMPOTENCY_KEY_PREFIX = "idv:callback"
MAX_WRITE_ATTEMPTS = 5


class IdempotencyStore(Protocol):
    async def claim_once(self, key: str, ttl_s: int) -> bool | None: ...

    async def delete(self, key: str) -> bool: ...


@dataclass(slots=True)
class VerificationCallback:
    workflow_id: str | None
    status: str | None
    user_id: str | None = None
    event_id: str | None = None
    error: str | None = None


@dataclass(slots=True)
class CallbackOutcome:
    success: bool
    message: str
    user_id: str
    status: VerificationStatus
    attempts: int
    applied: bool


@dataclass(slots=True)
class StartedVerification:
    verification_session_id: str
    verification_url: str
    status: VerificationStatus = "pending"


class IdentityVerificationCallbackHandler:
    """Applies provider callbacks to the user's verification state."""

    def __init__(
        self,
        repository: UserVerificationRepository,
        idempotency_store: IdempotencyStore | None = None,
        max_attempts: int | None = None,
        idempotency_ttl_s: int | None = None,
    ):
        self.repository = repository
        self.idempotency_store = idempotency_store
        self.max_attempts = max_attempts or settings.IDENTITY_VERIFICATION_MAX_ATTEMPTS
        self.idempotency_ttl_s = idempotency_ttl_s or settings.CALLBACK_IDEMPOTENCY_TTL_S

    async def handle(self, callback: VerificationCallback) -> CallbackOutcome:
        workflow_id = (callback.workflow_id or "").strip()
        if not workflow_id:
            raise ValidationError("workflowId is required")
        if not callback.status:
            raise ValidationError("status is required")

        state = await self.repository.find_by_workflow_id(workflow_id)
        if not state:
            # Stale or foreign session
            logger.warning("No user found for verification workflow", workflow_id=workflow_id)
            raise NotFound("No user found for this verification workflow")

        if callback.user_id and callback.user_id != state.user_id:
            logger.warning(
                "Callback user id does not match workflow owner",
                workflow_id=workflow_id,
                callback_user_id=callback.user_id,
                user_id=state.user_id,
            )

        outcome = map_provider_status(callback.status)
        if outcome is None:
            logger.warning(
                "Unrecognized provider status ignored",
                workflow_id=workflow_id,
                user_id=state.user_id,
                provider_status=callback.status,
            )
            return CallbackOutcome(
                success=False,
                message=f"Unrecognized verification status '{callback.status}', no changes made",
                user_id=state.user_id,
                status=state.status,
                attempts=state.attempts,
                applied=False,
            )

        claim_key = None
        if callback.event_id and self.idempotency_store is not None:
            claim_key = f"{IDEMPOTENCY_KEY_PREFIX}:{workflow_id}:{callback.event_id}"
            claimed = await self.idempotency_store.claim_once(claim_key, self.idempotency_ttl_s)
            if claimed is False:
                logger.info(
                    "Duplicate verification callback skipped",
                    workflow_id=workflow_id,
                    event_id=callback.event_id,
                    user_id=state.user_id,
                )
                return CallbackOutcome(
                    success=True,
                    message="Callback already processed",
                    user_id=state.user_id,
                    status=state.status,
                    attempts=state.attempts,
                    applied=False,
                )
            if claimed is None:
                logger.warning(
                    "Idempotency store unavailable, processing callback without guard",
                    workflow_id=workflow_id,
                    event_id=callback.event_id,
                )
                claim_key = None

        try:
            updated = await self._write_outcome(workflow_id, state, outcome)
        except Exception:
            # Release the claim so a redelivery is processed
            if claim_key:
                await self.idempotency_store.delete(claim_key)
            raise

        log = logger.warning if updated.status == "blocked" else logger.info
        log(
            "Identity verification updated",
            user_id=updated.user_id,
            workflow_id=workflow_id,
            provider_status=callback.status,
            status=updated.status,
            attempts=updated.attempts,
            provider_error=callback.error,
        )

        return CallbackOutcome(
            success=True,
            message=f"Verification status updated to {updated.status}",
            user_id=updated.user_id,
            status=updated.status,
            attempts=updated.attempts,
            applied=True,
        )

    async def _write_outcome(
        self, workflow_id: str, state: UserVerificationState, outcome: VerificationStatus
    ) -> UserVerificationState:
        """
        Compare-and-set the new state. When a concurrent callback changed the
        row since it was read, re-read and recompute so no attempt is lost.
        """
        for _ in range(MAX_WRITE_ATTEMPTS):
            update = compute_verification_update(state, outcome, self.max_attempts)
            updated = await self.repository.apply_update(state, update)
            if updated is not None:
                return updated

            latest = await self.repository.find_by_workflow_id(workflow_id)
            if latest is None or latest.user_id != state.user_id:
                raise NotFound("User no longer exists")

            logger.info(
                "Concurrent verification update, recomputing",
                user_id=state.user_id,
                workflow_id=workflow_id,
                read_attempts=state.attempts,
                current_attempts=latest.attempts,
            )
            state = latest

        logger.error(
            "Verification update kept conflicting",
            user_id=state.user_id,
            workflow_id=workflow_id,
            tries=MAX_WRITE_ATTEMPTS,
        )
        raise Unexpected("Could not apply verification outcome, please retry")


class StartIdentityVerificationUseCase:
    """Opens a provider session and remembers its id on the user."""

    def __init__(
        self,
        repository: UserVerificationRepository,
        provider: IdentityProviderClient,
    ):
        self.repository = repository
        self.provider = provider

    async def execute(self, user_id: str) -> StartedVerification:
        if not user_id:
            raise ValidationError("userId is required")

        missing = settings.missing_identity_provider_settings()
        if missing:
            logger.error("Identity provider not configured", missing=missing)
            raise ValidationError(
                f"Identity verification is not configured, missing: {', '.join(missing)}"
            )

        subject = await self.repository.get_subject(user_id)
        if not subject:
            raise NotFound("User not found")

        if subject.is_blocked:
            raise Forbidden("User is blocked from identity verification")

        session = await self.provider.create_session(
            user_id,
            settings.identity_callback_url(),
            email=subject.email,
            phone_number=subject.phone_number,
            document_number=subject.document_number,
        )
        await self.repository.assign_workflow(user_id, session.session_id)

        return StartedVerification(
            verification_session_id=session.session_id,
            verification_url=session.verification_url,
        )
