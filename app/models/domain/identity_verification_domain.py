"""
Domain models for identity verification.

The provider (Didit) reports session outcomes with its own vocabulary;
these models hold the user's side of the state and the single update the
callback handler computes from an outcome.
"""

from dataclasses import dataclass
from typing import Literal

VerificationStatus = Literal["pending", "verified", "failed", "blocked"]

BLOCKED_REASON = "Multiple failed identity verification attempts"

# Keys are lower-cased provider statuses
PROVIDER_STATUS_MAP: dict[str, VerificationStatus] = {
    "verified": "verified",
    "approved": "verified",
    "failed": "failed",
    "declined": "failed",
    "rejected": "failed",
    "expired": "failed",
    "pending": "pending",
    "not started": "pending",
    "in_progress": "pending",
    "in-progress": "pending",
    "in progress": "pending",
    "in review": "pending",
    "in_review": "pending",
}


def map_provider_status(provider_status: str | None) -> VerificationStatus | None:
    """Map a provider status to ours; None when the status is not recognized."""
    if not provider_status:
        return None
    return PROVIDER_STATUS_MAP.get(provider_status.strip().lower())


@dataclass(slots=True)
class UserVerificationState:
    """Verification fields of a users row."""

    user_id: str
    workflow_id: str | None
    status: VerificationStatus
    attempts: int
    is_blocked: bool
    blocked_reason: str | None


@dataclass(slots=True)
class VerificationSubject:
    """What the provider needs to know about a user when a session starts."""

    user_id: str
    email: str | None
    phone_number: str | None
    document_number: str | None
    is_blocked: bool


@dataclass(slots=True)
class VerificationUpdate:
    """Fields written back to the user in one statement."""

    status: VerificationStatus
    attempts: int
    is_blocked: bool
    blocked_reason: str | None


def compute_verification_update(
    state: UserVerificationState, outcome: VerificationStatus, max_attempts: int
) -> VerificationUpdate:
    """
    Apply one provider outcome to the user's verification state.

    Failures bump the attempt counter and lock the user out once it reaches
    max_attempts. A verified outcome resets the counter. Block flags are
    never cleared here; unblocking is an administrative action. While the
    flag is set, any outcome other than verified keeps the status "blocked".
    """
    attempts = state.attempts
    status: VerificationStatus = outcome
    is_blocked = state.is_blocked
    blocked_reason = state.blocked_reason

    if outcome == "failed":
        attempts += 1
        if attempts >= max_attempts:
            status = "blocked"
            is_blocked = True
            blocked_reason = BLOCKED_REASON
    elif outcome == "verified":
        attempts = 0

    if is_blocked and outcome != "verified":
        status = "blocked"

    return VerificationUpdate(
        status=status,
        attempts=attempts,
        is_blocked=is_blocked,
        blocked_reason=blocked_reason,
    )
