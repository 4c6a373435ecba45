"""
Dependency providers for routers.

Repositories and use cases are built here, per request, from explicit
constructor arguments. Tests replace the repository providers through
`app.dependency_overrides`.
"""

from fastapi import Depends

from app.repositories.multiplier_request_repository import (
    MultiplierRequestRepository,
    PostgresMultiplierRequestRepository,
)
from app.repositories.user_verification_repository import (
    PostgresUserVerificationRepository,
    UserVerificationRepository,
)
from app.services.identity_provider_client import IdentityProviderClient
from app.services.identity_verification_service import (
    IdempotencyStore,
    IdentityVerificationCallbackHandler,
    StartIdentityVerificationUseCase,
)
from app.services.multiplier_request_service import (
    ApproveMultiplierRequestUseCase,
    GetMultiplierRequestsUseCase,
    GetMultiplierRequestUseCase,
    RejectMultiplierRequestUseCase,
    RequestMultiplierUseCase,
)
from app.services.redis_client import fast_redis


def get_multiplier_request_repository() -> MultiplierRequestRepository:
    return PostgresMultiplierRequestRepository()


def get_user_verification_repository() -> UserVerificationRepository:
    return PostgresUserVerificationRepository()


def get_idempotency_store() -> IdempotencyStore:
    return fast_redis


def get_identity_provider_client() -> IdentityProviderClient:
    return IdentityProviderClient()


def get_request_multiplier_use_case(
    repository: MultiplierRequestRepository = Depends(get_multiplier_request_repository),
) -> RequestMultiplierUseCase:
    return RequestMultiplierUseCase(repository)


def get_approve_use_case(
    repository: MultiplierRequestRepository = Depends(get_multiplier_request_repository),
) -> ApproveMultiplierRequestUseCase:
    return ApproveMultiplierRequestUseCase(repository)


def get_reject_use_case(
    repository: MultiplierRequestRepository = Depends(get_multiplier_request_repository),
) -> RejectMultiplierRequestUseCase:
    return RejectMultiplierRequestUseCase(repository)


def get_list_use_case(
    repository: MultiplierRequestRepository = Depends(get_multiplier_request_repository),
) -> GetMultiplierRequestsUseCase:
    return GetMultiplierRequestsUseCase(repository)


def get_lookup_use_case(
    repository: MultiplierRequestRepository = Depends(get_multiplier_request_repository),
) -> GetMultiplierRequestUseCase:
    return GetMultiplierRequestUseCase(repository)


def get_callback_handler(
    repository: UserVerificationRepository = Depends(get_user_verification_repository),
    idempotency_store: IdempotencyStore = Depends(get_idempotency_store),
) -> IdentityVerificationCallbackHandler:
    return IdentityVerificationCallbackHandler(repository, idempotency_store)


def get_start_verification_use_case(
    repository: UserVerificationRepository = Depends(get_user_verification_repository),
    provider: IdentityProviderClient = Depends(get_identity_provider_client),
) -> StartIdentityVerificationUseCase:
    return StartIdentityVerificationUseCase(repository, provider)
