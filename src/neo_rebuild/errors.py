"""Errors raised while rebuilding a title."""

from typing import Optional


class RebuildError(Exception):
    """Base class; `title` and `area` are filled in as the error leaves populate()."""

    def __init__(self, message: str, title: Optional[str] = None, area=None):
        super().__init__(message)
        self.message = message
        self.title = title
        self.area = area

    def __str__(self) -> str:
        where = []
        if self.title:
            where.append(self.title)
        if self.area is not None:
            where.append(getattr(self.area, "name", str(self.area)))
        if where:
            return f"{'/'.join(where)}: {self.message}"
        return self.message


class StreamReadError(RebuildError):
    """An input stream failed or ended early."""


class LayoutMismatchError(RebuildError):
    """Supplied streams do not fit the title layout."""


class BoundsViolation(RebuildError):
    """A computed source offset falls outside the buffer."""


class BackendError(RebuildError):
    """The CMC backend is missing or broke its contract."""
