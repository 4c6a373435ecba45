from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

MultiplierRequestStatus = Literal["pending", "approved", "rejected"]


class MultiplierRequest(BaseModel):
    """A follower's request to become a multiplier (team leader) in a campaign."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    user_name: str
    user_phone_number: str
    campaign_id: str
    campaign_name: str | None = None
    status: MultiplierRequestStatus = "pending"
    requested_at: datetime

    # Stamped once, when the request leaves "pending"
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    reviewer_name: str | None = None
    rejection_reason: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"


class NewMultiplierRequest(BaseModel):
    """Fields supplied by the requester; id and requested_at are assigned on create."""

    user_id: str
    user_name: str
    user_phone_number: str
    campaign_id: str
    campaign_name: str | None = None


class ReviewDecision(BaseModel):
    """Fields written by the transition out of "pending"."""

    status: Literal["approved", "rejected"]
    reviewed_at: datetime
    reviewed_by: str
    reviewer_name: str
    rejection_reason: str | None = None
