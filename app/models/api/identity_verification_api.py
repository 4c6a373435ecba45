# app/models/api/identity_verification_api.py
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VerificationCallbackBody(_CamelModel):
    """Provider webhook body. Presence of workflowId/status is checked by the handler."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    workflow_id: str | None = None
    status: str | None = None
    user_id: str | None = None
    event_id: str | None = None
    error: str | None = None


class VerificationCallbackResponse(_CamelModel):
    success: bool
    message: str
    user_id: str
    status: Literal["pending", "verified", "failed", "blocked"]


class StartVerificationBody(_CamelModel):
    user_id: str = Field(..., min_length=1)


class StartVerificationResponse(_CamelModel):
    verification_session_id: str
    verification_url: str
    status: Literal["pending"] = "pending"
