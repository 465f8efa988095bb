from __future__ import annotations

from contextlib import aclosing
from typing import Any
from urllib.parse import quote

from ghkeys.domain.exceptions import TeamNotFoundError
from ghkeys.domain.models import TeamIdentity
from ghkeys.domain.ports.directory import DirectoryClientProtocol
from ghkeys.infra.http.github_client import ApiError, GithubApiClient

DEFAULT_PAGE_SIZE = 100


class GithubDirectory(DirectoryClientProtocol):
    """
    Назначение/ответственность:
        Адаптер DirectoryClientProtocol поверх GithubApiClient.
        Переводит ответы GitHub в доменные значения (id команды, логины, ключи).
    Ограничения:
        - Без кэша и без собственной конкурентности: один вызов = один обход страниц.
        - Ошибки клиента (ApiError) пробрасываются как есть.
    """

    def __init__(self, client: GithubApiClient, page_size: int = DEFAULT_PAGE_SIZE, max_pages: int | None = None):
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages

    async def resolve_team_id(self, team_identity: str) -> int:
        """
        Контракт (вход/выход):
            Вход: "<org>/<team name>".
            Выход: числовой id команды.
        Алгоритм:
            - Разбирает идентификатор (InvalidIdentityFormError при неверной форме).
            - Обходит страницы /orgs/{org}/teams до первого совпадения имени без учёта регистра.
            - Нет совпадений после всех страниц -> TeamNotFoundError.
        """
        team = TeamIdentity.parse(team_identity)
        wanted = team.name.casefold()
        path = f"/orgs/{quote(team.org, safe='')}/teams"
        async with aclosing(self.client.getPagedItems(path, self.page_size, self.max_pages)) as pages:
            async for _page, items in pages:
                for item in items:
                    name = _field(item, "name")
                    if isinstance(name, str) and name.casefold() == wanted:
                        return int(_field(item, "id"))
        raise TeamNotFoundError(team.org, team.name)

    async def list_team_members(self, team_id: int) -> list[str]:
        items = await self.client.collectPagedItems(f"/teams/{team_id}/members", self.page_size, self.max_pages)
        return [str(_field(item, "login")) for item in items]

    async def list_user_keys(self, login: str) -> list[str]:
        path = f"/users/{quote(login, safe='')}/keys"
        items = await self.client.collectPagedItems(path, self.page_size, self.max_pages)
        return [str(_field(item, "key")) for item in items]


def _field(item: Any, name: str) -> Any:
    if not isinstance(item, dict) or name not in item:
        raise ApiError(f"Unexpected item format: missing '{name}'", code="INVALID_ITEMS_FORMAT", retryable=False)
    return item[name]


__all__ = ["DEFAULT_PAGE_SIZE", "GithubDirectory"]
