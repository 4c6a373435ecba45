"""
Persistence for multiplier requests.

MultiplierRequestRepository is the interface the use cases depend on;
PostgresMultiplierRequestRepository is the production implementation.
Transitions out of "pending" go through apply_review(), a conditional update
that only matches rows still pending, so two reviewers racing on the same
request cannot both succeed.
"""

import uuid
from datetime import UTC, datetime
from typing import Protocol

from app.db.helpers import fetch_all, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.multiplier_request_domain import (
    MultiplierRequest,
    NewMultiplierRequest,
    ReviewDecision,
)

logger = get_logger(__name__)

_COLUMNS = """
    id, user_id, user_name, user_phone_number, campaign_id, campaign_name,
    status, requested_at, reviewed_at, reviewed_by, reviewer_name, rejection_reason
"""


class MultiplierRequestRepository(Protocol):
    async def create(self, request: NewMultiplierRequest) -> MultiplierRequest: ...

    async def find_latest_for_user(
        self, user_id: str, campaign_id: str
    ) -> MultiplierRequest | None: ...

    async def list_for_campaign(
        self, campaign_id: str, reviewer_id: str | None = None
    ) -> list[MultiplierRequest]: ...

    async def get(self, request_id: str) -> MultiplierRequest | None: ...

    async def apply_review(
        self, request_id: str, decision: ReviewDecision
    ) -> MultiplierRequest | None:
        """Write the decision only if the request is still pending; None otherwise."""
        ...


class PostgresMultiplierRequestRepository:
    """multiplier_requests table access."""

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def create(self, request: NewMultiplierRequest) -> MultiplierRequest:
        query = f"""
            INSERT INTO multiplier_requests (
                id, user_id, user_name, user_phone_number,
                campaign_id, campaign_name, status, requested_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, 'pending', %s)
            RETURNING {_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                str(uuid.uuid4()),
                request.user_id,
                request.user_name,
                request.user_phone_number,
                request.campaign_id,
                request.campaign_name,
                datetime.now(UTC),
            ),
        )
        return MultiplierRequest.model_validate(row)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def find_latest_for_user(
        self, user_id: str, campaign_id: str
    ) -> MultiplierRequest | None:
        query = f"""
            SELECT {_COLUMNS}
            FROM multiplier_requests
            WHERE user_id = %s AND campaign_id = %s
            ORDER BY requested_at DESC
            LIMIT 1
        """
        row = await fetch_one(query, (user_id, campaign_id))
        return MultiplierRequest.model_validate(row) if row else None

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_for_campaign(
        self, campaign_id: str, reviewer_id: str | None = None
    ) -> list[MultiplierRequest]:
        # A reviewer never sees their own requests
        if reviewer_id:
            query = f"""
                SELECT {_COLUMNS}
                FROM multiplier_requests
                WHERE campaign_id = %s AND user_id <> %s
                ORDER BY requested_at ASC
            """
            params: tuple = (campaign_id, reviewer_id)
        else:
            query = f"""
                SELECT {_COLUMNS}
                FROM multiplier_requests
                WHERE campaign_id = %s
                ORDER BY requested_at ASC
            """
            params = (campaign_id,)

        rows = await fetch_all(query, params)
        return [MultiplierRequest.model_validate(row) for row in rows]

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get(self, request_id: str) -> MultiplierRequest | None:
        query = f"SELECT {_COLUMNS} FROM multiplier_requests WHERE id = %s"
        row = await fetch_one(query, (request_id,))
        return MultiplierRequest.model_validate(row) if row else None

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def apply_review(
        self, request_id: str, decision: ReviewDecision
    ) -> MultiplierRequest | None:
        query = f"""
            UPDATE multiplier_requests
            SET
                status = %s,
                reviewed_at = %s,
                reviewed_by = %s,
                reviewer_name = %s,
                rejection_reason = %s
            WHERE id = %s AND status = 'pending'
            RETURNING {_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                decision.status,
                decision.reviewed_at,
                decision.reviewed_by,
                decision.reviewer_name,
                decision.rejection_reason,
                request_id,
            ),
        )
        if not row:
            logger.info(
                "Review not applied, request missing or no longer pending",
                request_id=request_id,
                decision=decision.status,
            )
            return None
        return MultiplierRequest.model_validate(row)
