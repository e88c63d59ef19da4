"""Errors returned alongside fallback values by the content caches."""

from __future__ import annotations

from pathlib import Path


class CacheError(Exception):
    """Base class: a refresh of ``path`` failed because of ``cause``."""

    action = "cannot refresh"

    def __init__(self, path: str | Path, cause: BaseException):
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"{self.action} `{self.path}`: {cause}")
        self.__cause__ = cause


class SourceReadError(CacheError):
    """The source file is missing, unreadable or not text."""

    action = "cannot read"


class RecomputeError(CacheError):
    """The source was read but its content was rejected."""

    action = "cannot process"
