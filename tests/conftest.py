from __future__ import annotations

from collections import Counter
from pathlib import Path

import httpx
import pytest

from ghkeys.infra.http.github_client import GithubApiClient

TESTDATA_DIR = Path(__file__).parent / "testdata"


class FakeGithub:
    """In-memory GitHub REST API: /orgs/{org}/teams, /teams/{id}/members, /users/{login}/keys."""

    def __init__(self) -> None:
        self.teams: dict[str, list[dict]] = {
            "MyOrg": [{"id": 1, "name": "Team 1"}, {"id": 2, "name": "Team 2"}],
            "MyOtherOrg": [{"id": 3, "name": "Team 3"}],
        }
        self.members: dict[int, list[str]] = {
            1: ["github_user_1", "github_user_2"],
            2: ["github_user_3"],
            3: ["github_user_4"],
        }
        self.keys: dict[str, list[str]] = {
            "github_user_1": ["github_user_1_key_1", "github_user_1_key_2"],
            "github_user_2": ["github_user_2_key_1"],
            "github_user_3": ["github_user_3_key_1"],
            "github_user_4": ["github_user_4_key_1"],
        }
        # page size forced by the server regardless of per_page
        self.per_page: int | None = None
        # path -> status code returned instead of data
        self.fail_paths: dict[str, int] = {}
        # (path, page) -> status code
        self.fail_pages: dict[tuple[str, int], int] = {}
        self.calls: Counter[str] = Counter()
        self.requests: list[httpx.Request] = []

    def _items_for(self, path: str) -> list[dict] | None:
        parts = path.strip("/").split("/")
        if len(parts) == 3 and parts[0] == "orgs" and parts[2] == "teams":
            return self.teams.get(parts[1])
        if len(parts) == 3 and parts[0] == "teams" and parts[2] == "members":
            logins = self.members.get(int(parts[1]))
            return None if logins is None else [{"login": login} for login in logins]
        if len(parts) == 3 and parts[0] == "users" and parts[2] == "keys":
            keys = self.keys.get(parts[1])
            return None if keys is None else [{"id": i, "key": key} for i, key in enumerate(keys)]
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        page = int(request.url.params.get("page", "1"))
        self.calls[path] += 1
        self.requests.append(request)

        if path in self.fail_paths:
            return httpx.Response(self.fail_paths[path], text="boom")
        if (path, page) in self.fail_pages:
            return httpx.Response(self.fail_pages[(path, page)], text="boom")

        items = self._items_for(path)
        if items is None:
            return httpx.Response(404, json={"message": "Not Found"})

        perPage = self.per_page or int(request.url.params.get("per_page", "30"))
        chunk = items[(page - 1) * perPage : page * perPage]
        headers = {}
        if page * perPage < len(items):
            nextUrl = request.url.copy_set_param("page", page + 1)
            headers["Link"] = f'<{nextUrl}>; rel="next"'
        return httpx.Response(200, json=chunk, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_client(transport: httpx.AsyncBaseTransport, *, retries: int = 0) -> GithubApiClient:
    return GithubApiClient(
        token="token",
        baseUrl="https://api.github.local",
        retries=retries,
        retryBackoffSeconds=0,
        transport=transport,
    )


@pytest.fixture
def fake_github() -> FakeGithub:
    return FakeGithub()


@pytest.fixture
def client_factory():
    return make_client


@pytest.fixture
def testdata_dir() -> Path:
    return TESTDATA_DIR
