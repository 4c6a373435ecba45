import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI

from app.auth.verify import auth_dependency
from app.models.domain.identity_verification_domain import (
    UserVerificationState,
    VerificationSubject,
    VerificationUpdate,
)
from app.models.domain.multiplier_request_domain import (
    MultiplierRequest,
    NewMultiplierRequest,
    ReviewDecision,
)
from app.routes import identity_verification, multiplier_requests
from app.routes.dependencies import (
    get_idempotency_store,
    get_multiplier_request_repository,
    get_user_verification_repository,
)
from app.routes.error_handlers import register_exception_handlers


class InMemoryMultiplierRequestRepository:
    def __init__(self):
        self.records: dict[str, MultiplierRequest] = {}
        self._seq = 0
        self._base_time = datetime(2025, 1, 1, tzinfo=UTC)

    async def create(self, request: NewMultiplierRequest) -> MultiplierRequest:
        self._seq += 1
        record = MultiplierRequest(
            id=f"req-{self._seq}",
            requested_at=self._base_time + timedelta(minutes=self._seq),
            status="pending",
            **request.model_dump(),
        )
        self.records[record.id] = record
        return record

    async def find_latest_for_user(
        self, user_id: str, campaign_id: str
    ) -> MultiplierRequest | None:
        matches = [
            r for r in self.records.values() if r.user_id == user_id and r.campaign_id == campaign_id
        ]
        return matches[-1] if matches else None

    async def list_for_campaign(
        self, campaign_id: str, reviewer_id: str | None = None
    ) -> list[MultiplierRequest]:
        return [
            r
            for r in self.records.values()
            if r.campaign_id == campaign_id and (reviewer_id is None or r.user_id != reviewer_id)
        ]

    async def get(self, request_id: str) -> MultiplierRequest | None:
        return self.records.get(request_id)

    async def apply_review(
        self, request_id: str, decision: ReviewDecision
    ) -> MultiplierRequest | None:
        record = self.records.get(request_id)
        if record is None or record.status != "pending":
            return None
        updated = record.model_copy(update=decision.model_dump())
        self.records[request_id] = updated
        return updated


class InMemoryUserVerificationRepository:
    def __init__(self):
        self.users: dict[str, dict] = {}
        self.writes = 0
        # Hand control to other tasks between a read and the caller's write
        self.yield_after_read = False

    def add_user(
        self,
        user_id: str,
        workflow_id: str | None = None,
        status: str = "pending",
        attempts: int = 0,
        is_blocked: bool = False,
        email: str | None = None,
    ) -> None:
        self.users[user_id] = {
            "workflow_id": workflow_id,
            "status": status,
            "attempts": attempts,
            "is_blocked": is_blocked,
            "blocked_reason": None,
            "email": email,
        }

    def _state(self, user_id: str) -> UserVerificationState:
        user = self.users[user_id]
        return UserVerificationState(
            user_id=user_id,
            workflow_id=user["workflow_id"],
            status=user["status"],
            attempts=user["attempts"],
            is_blocked=user["is_blocked"],
            blocked_reason=user["blocked_reason"],
        )

    async def find_by_workflow_id(self, workflow_id: str) -> UserVerificationState | None:
        for user_id, user in self.users.items():
            if user["workflow_id"] == workflow_id:
                state = self._state(user_id)
                if self.yield_after_read:
                    await asyncio.sleep(0)
                return state
        return None

    async def get_subject(self, user_id: str) -> VerificationSubject | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        return VerificationSubject(
            user_id=user_id,
            email=user["email"],
            phone_number=None,
            document_number=None,
            is_blocked=user["is_blocked"],
        )

    async def apply_update(
        self, expected: UserVerificationState, update: VerificationUpdate
    ) -> UserVerificationState | None:
        user = self.users.get(expected.user_id)
        if user is None:
            return None
        if (user["status"], user["attempts"], user["is_blocked"]) != (
            expected.status,
            expected.attempts,
            expected.is_blocked,
        ):
            return None
        user_id = expected.user_id
        self.writes += 1
        user.update(
            status=update.status,
            attempts=update.attempts,
            is_blocked=update.is_blocked,
            blocked_reason=update.blocked_reason,
        )
        return self._state(user_id)

    async def assign_workflow(self, user_id: str, workflow_id: str) -> None:
        self.users[user_id].update(workflow_id=workflow_id, status="pending")


class FakeIdempotencyStore:
    def __init__(self, available: bool = True):
        self.keys: set[str] = set()
        self.available = available

    async def claim_once(self, key: str, ttl_s: int) -> bool | None:
        if not self.available:
            return None
        if key in self.keys:
            return False
        self.keys.add(key)
        return True

    async def delete(self, key: str) -> bool:
        if key in self.keys:
            self.keys.remove(key)
            return True
        return False


@pytest.fixture
def request_repo():
    return InMemoryMultiplierRequestRepository()


@pytest.fixture
def user_repo():
    return InMemoryUserVerificationRepository()


@pytest.fixture
def idempotency_store():
    return FakeIdempotencyStore()


@pytest.fixture
def claims():
    """Mutable claims returned by the auth override; tests switch roles by editing it."""
    return {"sub": "u1", "name": "Laura", "phone_number": "3001234567", "role": "FOLLOWER"}


@pytest.fixture
def api_app(request_repo, user_repo, idempotency_store, claims):
    app = FastAPI()
    app.include_router(multiplier_requests.router)
    app.include_router(identity_verification.router)
    register_exception_handlers(app)

    app.dependency_overrides[auth_dependency] = lambda: claims
    app.dependency_overrides[get_multiplier_request_repository] = lambda: request_repo
    app.dependency_overrides[get_user_verification_repository] = lambda: user_repo
    app.dependency_overrides[get_idempotency_store] = lambda: idempotency_store
    return app
