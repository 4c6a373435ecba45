# app/models/api/multiplier_request_api.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateMultiplierRequestBody(_CamelModel):
    """Body for POST /dashboard/multiplier-request. Requester comes from the token."""

    campaign_id: str = Field(..., min_length=1)
    campaign_name: str | None = Field(None, max_length=200)


class RejectMultiplierRequestBody(_CamelModel):
    """Body for POST /dashboard/multiplier-requests/{id}/reject"""

    rejection_reason: str | None = Field(None, max_length=1000)
