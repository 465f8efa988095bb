from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class DirectoryClientProtocol(Protocol):
    """
    Назначение:
        Контракт удалённого каталога команд и пользователей (GitHub).

    Контракт:
        - resolve_team_id(team_identity) -> int
        - list_team_members(team_id) -> list[str]
        - list_user_keys(login) -> list[str]
        - Пагинация исчерпывающая: частичных результатов нет, ошибка любой
          страницы означает ошибку всего вызова.
    """

    async def resolve_team_id(self, team_identity: str) -> int: ...
    async def list_team_members(self, team_id: int) -> list[str]: ...
    async def list_user_keys(self, login: str) -> list[str]: ...


__all__ = ["DirectoryClientProtocol"]
