from unittest.mock import AsyncMock

import pytest

from app.db.helpers import DatabaseError
from app.models.domain.multiplier_request_domain import NewMultiplierRequest
from app.services.errors import AlreadyApproved, DuplicateRequest, InvalidState, NotFound
from app.services.multiplier_request_service import (
    ApproveMultiplierRequestUseCase,
    GetMultiplierRequestsUseCase,
    GetMultiplierRequestUseCase,
    RejectMultiplierRequestUseCase,
    RequestMultiplierUseCase,
)


def _new_request(user_id: str = "u1", campaign_id: str = "c1") -> NewMultiplierRequest:
    return NewMultiplierRequest(
        user_id=user_id,
        user_name="Laura",
        user_phone_number="3001234567",
        campaign_id=campaign_id,
        campaign_name="Campaign One",
    )


@pytest.mark.asyncio
async def test_create_request_starts_pending(request_repo):
    created = await RequestMultiplierUseCase(request_repo).execute(_new_request())

    assert created.status == "pending"
    assert created.id
    assert created.requested_at is not None
    assert created.reviewed_at is None
    assert created.reviewed_by is None


@pytest.mark.asyncio
async def test_create_request_while_pending_is_duplicate(request_repo):
    use_case = RequestMultiplierUseCase(request_repo)
    await use_case.execute(_new_request())

    with pytest.raises(DuplicateRequest):
        await use_case.execute(_new_request())

    assert len(request_repo.records) == 1


@pytest.mark.asyncio
async def test_create_request_after_approval_fails(request_repo):
    use_case = RequestMultiplierUseCase(request_repo)
    created = await use_case.execute(_new_request())
    await ApproveMultiplierRequestUseCase(request_repo).execute(created.id, "r1", "Ana")

    with pytest.raises(AlreadyApproved):
        await use_case.execute(_new_request())


@pytest.mark.asyncio
async def test_create_request_after_rejection_appends_new_record(request_repo):
    use_case = RequestMultiplierUseCase(request_repo)
    first = await use_case.execute(_new_request())
    await RejectMultiplierRequestUseCase(request_repo).execute(first.id, "r1", "Ana", "Incomplete")

    second = await use_case.execute(_new_request())

    assert second.id != first.id
    assert second.status == "pending"
    assert request_repo.records[first.id].status == "rejected"
    assert len(request_repo.records) == 2


@pytest.mark.asyncio
async def test_create_request_other_campaign_is_independent(request_repo):
    use_case = RequestMultiplierUseCase(request_repo)
    await use_case.execute(_new_request(campaign_id="c1"))

    other = await use_case.execute(_new_request(campaign_id="c2"))

    assert other.status == "pending"


@pytest.mark.asyncio
async def test_create_request_unique_violation_maps_to_duplicate():
    repo = AsyncMock()
    repo.find_latest_for_user.return_value = None
    repo.create.side_effect = DatabaseError(
        "duplicate key", operation="fetch_one", recoverable=False, sqlstate="23505"
    )

    with pytest.raises(DuplicateRequest):
        await RequestMultiplierUseCase(repo).execute(_new_request())


@pytest.mark.asyncio
async def test_create_request_other_database_errors_propagate():
    repo = AsyncMock()
    repo.find_latest_for_user.return_value = None
    repo.create.side_effect = DatabaseError("boom", recoverable=False, sqlstate="08006")

    with pytest.raises(DatabaseError):
        await RequestMultiplierUseCase(repo).execute(_new_request())


@pytest.mark.asyncio
async def test_approve_pending_request_stamps_reviewer(request_repo):
    created = await RequestMultiplierUseCase(request_repo).execute(_new_request("u1", "c1"))

    approved = await ApproveMultiplierRequestUseCase(request_repo).execute(created.id, "r1", "Ana")

    assert approved.status == "approved"
    assert approved.reviewed_by == "r1"
    assert approved.reviewer_name == "Ana"
    assert approved.reviewed_at is not None
    assert approved.rejection_reason is None
    assert approved.requested_at == created.requested_at


@pytest.mark.parametrize("terminal", ["approved", "rejected"])
@pytest.mark.asyncio
async def test_approve_terminal_request_fails_and_leaves_record(request_repo, terminal):
    created = await RequestMultiplierUseCase(request_repo).execute(_new_request())
    if terminal == "approved":
        await ApproveMultiplierRequestUseCase(request_repo).execute(created.id, "r1", "Ana")
    else:
        await RejectMultiplierRequestUseCase(request_repo).execute(created.id, "r1", "Ana")
    before = request_repo.records[created.id]

    with pytest.raises(InvalidState) as exc_info:
        await ApproveMultiplierRequestUseCase(request_repo).execute(created.id, "r2", "Pedro")

    assert exc_info.value.current_status == terminal
    assert terminal in str(exc_info.value)
    assert request_repo.records[created.id] == before


@pytest.mark.asyncio
async def test_approve_missing_request_is_not_found(request_repo):
    with pytest.raises(NotFound):
        await ApproveMultiplierRequestUseCase(request_repo).execute("missing", "r1", "Ana")


@pytest.mark.asyncio
async def test_approve_losing_race_reports_winner_state(request_repo):
    created = await RequestMultiplierUseCase(request_repo).execute(_new_request())
    original_apply = request_repo.apply_review

    async def reject_first(request_id, decision):
        # Another reviewer rejects between our read and our write
        record = request_repo.records[request_id]
        request_repo.records[request_id] = record.model_copy(
            update={
                "status": "rejected",
                "reviewed_at": decision.reviewed_at,
                "reviewed_by": "r2",
                "reviewer_name": "Pedro",
            }
        )
        return await original_apply(request_id, decision)

    request_repo.apply_review = reject_first

    with pytest.raises(InvalidState) as exc_info:
        await ApproveMultiplierRequestUseCase(request_repo).execute(created.id, "r1", "Ana")

    assert exc_info.value.current_status == "rejected"
    assert request_repo.records[created.id].status == "rejected"
    assert request_repo.records[created.id].reviewed_by == "r2"


@pytest.mark.asyncio
async def test_reject_stores_reason(request_repo):
    created = await RequestMultiplierUseCase(request_repo).execute(_new_request())

    rejected = await RejectMultiplierRequestUseCase(request_repo).execute(
        created.id, "r1", "Ana", "Missing documents"
    )

    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "Missing documents"
    assert rejected.reviewed_by == "r1"


@pytest.mark.parametrize("reason", [None, "", "   "])
@pytest.mark.asyncio
async def test_reject_without_reason_omits_it(request_repo, reason):
    created = await RequestMultiplierUseCase(request_repo).execute(_new_request())

    rejected = await RejectMultiplierRequestUseCase(request_repo).execute(
        created.id, "r1", "Ana", reason
    )

    assert rejected.status == "rejected"
    assert rejected.rejection_reason is None


@pytest.mark.asyncio
async def test_reject_already_rejected_fails(request_repo):
    created = await RequestMultiplierUseCase(request_repo).execute(_new_request())
    use_case = RejectMultiplierRequestUseCase(request_repo)
    await use_case.execute(created.id, "r1", "Ana")

    with pytest.raises(InvalidState):
        await use_case.execute(created.id, "r1", "Ana", "again")


@pytest.mark.asyncio
async def test_list_returns_only_pending(request_repo):
    create = RequestMultiplierUseCase(request_repo)
    pending = await create.execute(_new_request("u1"))
    approved = await create.execute(_new_request("u2"))
    rejected = await create.execute(_new_request("u3"))
    await create.execute(_new_request("u4", campaign_id="other"))
    await ApproveMultiplierRequestUseCase(request_repo).execute(approved.id, "r1", "Ana")
    await RejectMultiplierRequestUseCase(request_repo).execute(rejected.id, "r1", "Ana")

    result = await GetMultiplierRequestsUseCase(request_repo).execute("c1")

    assert [r.id for r in result] == [pending.id]


@pytest.mark.asyncio
async def test_list_passes_reviewer_scope_to_repository():
    repo = AsyncMock()
    repo.list_for_campaign.return_value = []

    await GetMultiplierRequestsUseCase(repo).execute("c1", reviewer_id="r1")

    repo.list_for_campaign.assert_awaited_once_with("c1", "r1")


@pytest.mark.asyncio
async def test_lookup_by_id_and_user(request_repo):
    created = await RequestMultiplierUseCase(request_repo).execute(_new_request())
    lookup = GetMultiplierRequestUseCase(request_repo)

    assert (await lookup.by_id(created.id)).id == created.id
    assert (await lookup.for_user("u1", "c1")).id == created.id

    with pytest.raises(NotFound):
        await lookup.by_id("missing")
    with pytest.raises(NotFound):
        await lookup.for_user("u1", "unknown")
