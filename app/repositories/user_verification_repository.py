"""
Postgres access to the identity verification columns of users.
"""

from typing import Protocol

from app.db.helpers import execute_query, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.identity_verification_domain import (
    UserVerificationState,
    VerificationSubject,
    VerificationUpdate,
)

logger = get_logger(__name__)

_STATE_COLUMNS = """
    id, identity_verification_workflow_id, identity_verification_status,
    identity_verification_attempts, is_blocked, blocked_reason
"""


def _to_state(row: dict) -> UserVerificationState:
    return UserVerificationState(
        user_id=row["id"],
        workflow_id=row["identity_verification_workflow_id"],
        status=row["identity_verification_status"],
        attempts=row["identity_verification_attempts"] or 0,
        is_blocked=bool(row["is_blocked"]),
        blocked_reason=row["blocked_reason"],
    )


class UserVerificationRepository(Protocol):
    async def find_by_workflow_id(self, workflow_id: str) -> UserVerificationState | None: ...

    async def get_subject(self, user_id: str) -> VerificationSubject | None: ...

    async def apply_update(
        self, expected: UserVerificationState, update: VerificationUpdate
    ) -> UserVerificationState | None: ...

    async def assign_workflow(self, user_id: str, workflow_id: str) -> None: ...


class PostgresUserVerificationRepository:
    """users table, identity verification columns only."""

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def find_by_workflow_id(self, workflow_id: str) -> UserVerificationState | None:
        query = f"""
            SELECT {_STATE_COLUMNS}
            FROM users
            WHERE identity_verification_workflow_id = %s
            LIMIT 1
        """
        row = await fetch_one(query, (workflow_id,))
        return _to_state(row) if row else None

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_subject(self, user_id: str) -> VerificationSubject | None:
        query = """
            SELECT id, email, phone_number, document_number, is_blocked
            FROM users
            WHERE id = %s
        """
        row = await fetch_one(query, (user_id,))
        if not row:
            return None
        return VerificationSubject(
            user_id=row["id"],
            email=row["email"],
            phone_number=row["phone_number"],
            document_number=row["document_number"],
            is_blocked=bool(row["is_blocked"]),
        )

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def apply_update(
        self, expected: UserVerificationState, update: VerificationUpdate
    ) -> UserVerificationState | None:
        """
        Write `update` only if the row still holds the `expected` status and
        attempt count. Returns None when another writer got there first or
        the user is gone.
        """
        query = f"""
            UPDATE users
            SET
                identity_verification_status = %s,
                identity_verification_attempts = %s,
                is_blocked = %s,
                blocked_reason = %s,
                updated_at = NOW()
            WHERE id = %s
              AND identity_verification_status IS NOT DISTINCT FROM %s
              AND COALESCE(identity_verification_attempts, 0) = %s
              AND is_blocked = %s
            RETURNING {_STATE_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                update.status,
                update.attempts,
                update.is_blocked,
                update.blocked_reason,
                expected.user_id,
                expected.status,
                expected.attempts,
                expected.is_blocked,
            ),
        )
        return _to_state(row) if row else None

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def assign_workflow(self, user_id: str, workflow_id: str) -> None:
        query = """
            UPDATE users
            SET
                identity_verification_workflow_id = %s,
                identity_verification_status = 'pending',
                updated_at = NOW()
            WHERE id = %s
        """
        await execute_query(query, (workflow_id, user_id))
        logger.info("Verification workflow assigned", user_id=user_id, workflow_id=workflow_id)
