from __future__ import annotations

import pwd
from pathlib import Path
from typing import Iterable

from ghkeys.domain.exceptions import OutputError


def getKeysOutput(keys: Iterable[str]) -> str:
    """
    Назначение:
        Текстовое представление списка ключей: по одному на строку, без завершающего перевода строки.
    """
    return "\n".join(keys)


def getAuthorizedKeysFilename(userHomeDir: str) -> str:
    return str(Path(userHomeDir) / ".ssh" / "authorized_keys")


def lookupHomeDir(username: str) -> str | None:
    """
    Назначение:
        Домашний каталог локального пользователя.

    Выходные данные:
        str | None
            None, если такого пользователя в системе нет.
    """
    try:
        return pwd.getpwnam(username).pw_dir
    except KeyError:
        return None


def writeKeysToUserAuthorizedKeysFile(keys: Iterable[str], userHomeDir: str) -> str:
    """
    Назначение:
        Перезаписывает ~/.ssh/authorized_keys пользователя списком ключей.

    Контракт:
        - Файл содержит ключи по одному на строку и ровно один завершающий "\\n".
        - Каталог .ssh не создаётся: если его нет - OutputError.
        - Прежнее содержимое файла полностью заменяется.

    Выходные данные:
        str
            Путь к записанному файлу.
    """
    authorizedKeysFilename = getAuthorizedKeysFilename(userHomeDir)
    keysOutput = getKeysOutput(keys) + "\n"
    try:
        with open(authorizedKeysFilename, "w", encoding="utf-8") as f:
            f.write(keysOutput)
    except OSError as exc:
        raise OutputError(f"Failed to write {authorizedKeysFilename}: {exc}", path=authorizedKeysFilename) from exc
    return authorizedKeysFilename
