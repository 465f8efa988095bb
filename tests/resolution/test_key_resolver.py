from __future__ import annotations

import asyncio
from collections import Counter

import pytest

from ghkeys.domain.error_codes import ErrorCode
from ghkeys.domain.exceptions import TeamNotFoundError
from ghkeys.domain.models import ItemResult, TeamIdentity
from ghkeys.domain.resolution.cache import ResolutionCache
from ghkeys.domain.resolution.resolver import KeyResolver, dedupe_users
from ghkeys.infra.http.github_client import ApiError
from ghkeys.infra.http.github_directory import GithubDirectory


class StubDirectory:
    """DirectoryClientProtocol double with call counters."""

    def __init__(self) -> None:
        self.teams = {"MyOrg": {"Team 1": 1, "Team 2": 2}, "MyOtherOrg": {"Team 3": 3}}
        self.members = {1: ["github_user_1", "github_user_2"], 2: ["github_user_3"], 3: ["github_user_4"]}
        self.keys = {
            "github_user_1": ["k1", "k2"],
            "github_user_2": ["k3"],
            "github_user_3": ["k4"],
            "github_user_4": ["k5"],
        }
        self.failing_users: set[str] = set()
        self.calls: Counter[str] = Counter()
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, name: str) -> None:
        self.calls[name] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1

    async def resolve_team_id(self, team_identity: str) -> int:
        await self._enter("resolve_team_id")
        team = TeamIdentity.parse(team_identity)
        for name, team_id in self.teams.get(team.org, {}).items():
            if name.casefold() == team.name.casefold():
                return team_id
        raise TeamNotFoundError(team.org, team.name)

    async def list_team_members(self, team_id: int) -> list[str]:
        await self._enter("list_team_members")
        return list(self.members[team_id])

    async def list_user_keys(self, login: str) -> list[str]:
        await self._enter("list_user_keys")
        if login in self.failing_users:
            raise ApiError("HTTP 500", status_code=500)
        return list(self.keys.get(login, []))


def make_resolver(directory, limiter=None) -> KeyResolver:
    return KeyResolver(directory, ResolutionCache(), limiter=limiter)


def test_dedupe_users_first_seen_wins():
    teams = [
        ItemResult.success("team", "a/x", ["u2", "u1"]),
        ItemResult.failure("team", "a/y", "TEAM_NOT_FOUND", "missing"),
        ItemResult.success("team", "a/z", ["u3", "u2"]),
    ]

    assert dedupe_users(["u1", "u1"], teams) == ["u1", "u2", "u3"]


@pytest.mark.asyncio
async def test_single_user_exact_keys():
    directory = StubDirectory()

    resolution = await make_resolver(directory).resolve(["github_user_1"], [])

    assert sorted(resolution.keys) == ["k1", "k2"]
    assert resolution.failures == ()
    assert directory.calls["resolve_team_id"] == 0


@pytest.mark.asyncio
async def test_users_and_teams_merge_without_duplicates():
    directory = StubDirectory()

    resolution = await make_resolver(directory).resolve(["github_user_1"], ["MyOrg/Team 1", "MyOrg/Team 2"])

    assert sorted(resolution.keys) == ["k1", "k2", "k3", "k4"]
    assert len(resolution.keys) == 4
    # github_user_1 declared and in Team 1: keys fetched once
    assert directory.calls["list_user_keys"] == 3


@pytest.mark.asyncio
async def test_same_key_from_different_users_is_kept():
    directory = StubDirectory()
    directory.keys["github_user_2"] = ["k1"]

    resolution = await make_resolver(directory).resolve([], ["MyOrg/Team 1"])

    assert sorted(resolution.keys) == ["k1", "k1", "k2"]


@pytest.mark.asyncio
async def test_team_name_case_shares_cache_entry():
    directory = StubDirectory()

    resolution = await make_resolver(directory).resolve([], ["MyOrg/team 1", "MyOrg/Team 1"])

    assert sorted(resolution.keys) == ["k1", "k2", "k3"]
    assert directory.calls["list_team_members"] == 1


@pytest.mark.asyncio
async def test_invalid_team_identity_is_isolated():
    directory = StubDirectory()

    resolution = await make_resolver(directory).resolve([], ["Invalid Team Name", "MyOrg/Team 2"])

    assert resolution.keys == ("k4",)
    assert len(resolution.failures) == 1
    failure = resolution.failures[0]
    assert failure.kind == "team"
    assert failure.identity == "Invalid Team Name"
    assert failure.error_code == ErrorCode.INVALID_IDENTITY_FORM.value


@pytest.mark.asyncio
async def test_unknown_team_is_isolated():
    directory = StubDirectory()

    resolution = await make_resolver(directory).resolve(["github_user_4"], ["MyOrg/Nope"])

    assert resolution.keys == ("k5",)
    assert [f.error_code for f in resolution.failures] == [ErrorCode.TEAM_NOT_FOUND.value]


@pytest.mark.asyncio
async def test_failing_user_is_isolated():
    directory = StubDirectory()
    directory.failing_users.add("github_user_2")

    resolution = await make_resolver(directory).resolve([], ["MyOrg/Team 1", "MyOrg/Team 2"])

    assert sorted(resolution.keys) == ["k1", "k2", "k4"]
    assert len(resolution.failures) == 1
    assert resolution.failures[0].identity == "github_user_2"
    assert resolution.failures[0].error_code == ErrorCode.HTTP_ERROR.value


@pytest.mark.asyncio
async def test_limiter_bounds_concurrent_remote_calls():
    directory = StubDirectory()
    limiter = asyncio.Semaphore(1)

    resolution = await make_resolver(directory, limiter=limiter).resolve(
        ["github_user_1", "github_user_2", "github_user_3", "github_user_4"], []
    )

    assert len(resolution.keys) == 5
    assert directory.max_in_flight == 1


@pytest.mark.asyncio
async def test_scenario_against_fake_github(fake_github, client_factory):
    async with client_factory(fake_github.transport) as client:
        resolver = KeyResolver(GithubDirectory(client), ResolutionCache())
        resolution = await resolver.resolve(["github_user_1"], ["MyOrg/Team 1", "MyOrg/Team 2"])

    assert sorted(resolution.keys) == [
        "github_user_1_key_1",
        "github_user_1_key_2",
        "github_user_2_key_1",
        "github_user_3_key_1",
    ]
