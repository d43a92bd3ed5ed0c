from datetime import date, datetime, timezone

import pytest

from hireflow.context import build_context, restore_context, snapshot_context, trigger_entity


@pytest.mark.asyncio
async def test_interview_payload_hydrates_candidate_and_job(entities):
    context = await build_context({"interview_id": "i1"}, "acme", entities)
    assert context["interview"]["id"] == "i1"
    assert context["candidate"]["name"] == "Ada Lovelace"
    assert context["job"]["title"] == "Staff Engineer"


@pytest.mark.asyncio
async def test_candidate_payload_hydrates_job(entities):
    context = await build_context(
        {"candidateId": "c1", "fromStatus": "new", "toStatus": "hired"}, "acme", entities
    )
    assert context["candidate"]["id"] == "c1"
    assert context["job"]["id"] == "j1"
    assert context["toStatus"] == "hired"


@pytest.mark.asyncio
async def test_entities_are_tenant_scoped(entities):
    context = await build_context({"candidate_id": "c1"}, "other", entities)
    assert context["candidate"] is None


@pytest.mark.asyncio
async def test_given_entities_are_kept(entities):
    context = await build_context(
        {"candidate": {"id": "c9", "name": "Given"}}, "acme", entities
    )
    assert context["candidate"]["name"] == "Given"


@pytest.mark.asyncio
async def test_without_entity_store_payload_is_returned():
    assert await build_context({"candidate_id": "c1"}, "acme") == {"candidate_id": "c1"}


def test_trigger_entity():
    assert trigger_entity({"interview": {"id": "i1"}, "candidate": {"id": "c1"}}) == ("interview", "i1")
    assert trigger_entity({"candidate_id": 5}) == ("candidate", "5")
    assert trigger_entity({"entityType": "job", "entityId": "j1"}) == ("job", "j1")
    assert trigger_entity({}) == (None, None)


def test_snapshot_round_trips_dates():
    context = {
        "interview": {"when": datetime(2026, 11, 2, 10, 0, tzinfo=timezone.utc)},
        "job": {"start": date(2027, 1, 4), "title": "Staff Engineer"},
        "slots": [date(2026, 11, 3)],
        "a/b": {"day": date(2026, 12, 1)},
    }
    snapshot, types = snapshot_context(context)

    assert snapshot["interview"]["when"] == "2026-11-02T10:00:00Z"
    assert types == {
        "/interview/when": "datetime",
        "/job/start": "date",
        "/slots/0": "date",
        "/a~1b/day": "date",
    }
    assert restore_context(snapshot, types) == context


def test_restore_skips_missing_paths():
    restored = restore_context({"job": {"title": "x"}}, {"/job/start": "date"})
    assert restored == {"job": {"title": "x"}}
