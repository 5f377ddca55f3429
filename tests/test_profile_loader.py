"""
Unit tests for the profile loader, its single-flight guard and role mapping.
"""

import asyncio

import pytest

from campus.modules.profile import Profile, ProfileLoader, ProfileStoreError, SingleFlight, normalize_role
from conftest import FakeProfileStore, make_session


@pytest.fixture
def loader(profile_store):
    return ProfileLoader(profile_store)


@pytest.mark.asyncio
async def test_fetch_profile(loader, profile_store):
    profile = await loader.fetch_profile(make_session())

    assert isinstance(profile, Profile)
    assert profile.id == "user-123"
    assert profile.full_name == "Ana Ruiz"
    assert profile.email == "ana@example.com"
    assert profile.role == "student"  # "estudiante" normalized
    assert profile_store.calls == ["user-123"]


@pytest.mark.asyncio
async def test_overlapping_fetch_returns_none(loader, profile_store):
    """Two concurrent fetches for one identity make a single remote call."""
    profile_store.gate = asyncio.Event()
    session = make_session()

    first = asyncio.create_task(loader.fetch_profile(session))
    await asyncio.sleep(0)

    second = await loader.fetch_profile(session)
    assert second is None

    profile_store.gate.set()
    profile = await first

    assert profile is not None
    assert profile_store.calls == ["user-123"]


@pytest.mark.asyncio
async def test_guard_released_after_fetch(loader, profile_store):
    session = make_session()

    await loader.fetch_profile(session)
    await loader.fetch_profile(session)

    assert profile_store.calls == ["user-123", "user-123"]


@pytest.mark.asyncio
async def test_different_identities_fetch_concurrently(profile_store):
    profile_store.rows["user-456"] = {"id": "user-456", "full_name": "Luis", "role": "admin"}
    profile_store.gate = asyncio.Event()
    loader = ProfileLoader(profile_store)

    first = asyncio.create_task(loader.fetch_profile(make_session()))
    second = asyncio.create_task(loader.fetch_profile(make_session(user_id="user-456")))
    await asyncio.sleep(0)
    profile_store.gate.set()

    results = await asyncio.gather(first, second)

    assert [p.id for p in results] == ["user-123", "user-456"]


@pytest.mark.asyncio
async def test_remote_error_returns_none(loader, profile_store):
    profile_store.error = ProfileStoreError("boom", status=500)

    assert await loader.fetch_profile(make_session()) is None


@pytest.mark.asyncio
async def test_unexpected_error_returns_none(loader, profile_store):
    profile_store.error = RuntimeError("socket closed")

    assert await loader.fetch_profile(make_session()) is None


@pytest.mark.asyncio
async def test_missing_row_returns_none(loader):
    assert await loader.fetch_profile(make_session(user_id="ghost")) is None


@pytest.mark.asyncio
async def test_guard_released_after_error(loader, profile_store):
    profile_store.error = ProfileStoreError("boom")
    await loader.fetch_profile(make_session())

    profile_store.error = None
    assert await loader.fetch_profile(make_session()) is not None


@pytest.mark.asyncio
async def test_malformed_row_returns_none():
    loader = ProfileLoader(FakeProfileStore(rows={"user-123": {"full_name": "No id"}}))

    assert await loader.fetch_profile(make_session()) is None


@pytest.mark.asyncio
async def test_single_flight_releases_on_cancel():
    flight = SingleFlight()
    blocker = asyncio.Event()

    task = asyncio.create_task(flight.run("k", blocker.wait))
    await asyncio.sleep(0)
    assert flight.in_flight("k")

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not flight.in_flight("k")


@pytest.mark.asyncio
async def test_single_flight_default_for_busy_key():
    flight = SingleFlight()
    blocker = asyncio.Event()

    task = asyncio.create_task(flight.run("k", blocker.wait))
    await asyncio.sleep(0)

    assert await flight.run("k", blocker.wait, default="busy") == "busy"

    blocker.set()
    await task


@pytest.mark.parametrize(
    "stored, expected",
    [
        ("teacher", "formador"),
        ("profesor", "formador"),
        ("administrador", "admin"),
        ("estudiante", "student"),
        ("voluntariuo", "voluntario"),
        ("admin", "admin"),
        ("mentor", "mentor"),
    ],
)
def test_normalize_role(stored, expected):
    assert normalize_role(stored) == expected


def test_profile_defaults_missing_role_to_student():
    profile = Profile.model_validate({"id": "u", "full_name": "X", "role": None})

    assert profile.role == "student"
