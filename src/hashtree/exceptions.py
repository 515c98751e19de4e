"""Exceptions for hashtree.

Every failure raised by the library is a :class:`HashTreeError` carrying an
:class:`ErrorCode`.  Callers branch on the code (see :func:`error_code`),
never on the message text.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Classification of a hashtree failure."""
    OK = "ok"
    UNKNOWN = "unknown"
    INTERNAL = "internal"
    CANNOT_DESERIALIZE = "cannot_deserialize"
    UNSUPPORTED = "unsupported"
    PATH_NOT_FOUND = "path_not_found"
    MALFORMED_GLOB = "malformed_glob"
    PATH_CONFLICT = "path_conflict"

    def __str__(self) -> str:          # noqa: D105
        return self.value


class HashTreeError(Exception):
    """Base class for all classified hashtree errors.

    Pass *cause* to record the underlying exception; it becomes
    ``__cause__`` exactly as ``raise ... from cause`` would.
    """

    code = ErrorCode.UNKNOWN

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message


class InternalError(HashTreeError):
    """A structural invariant of the tree was violated."""

    code = ErrorCode.INTERNAL


class CannotDeserializeError(HashTreeError):
    """Serialized bytes could not be decoded (truncated or corrupt)."""

    code = ErrorCode.CANNOT_DESERIALIZE


class UnsupportedError(HashTreeError):
    """Serialized bytes carry a version this library does not read."""

    code = ErrorCode.UNSUPPORTED


class PathNotFoundError(HashTreeError):
    """No node exists at the requested path."""

    code = ErrorCode.PATH_NOT_FOUND

    def __init__(self, path: str, message: str | None = None, **kwargs):
        super().__init__(message or f"no node at {path}", **kwargs)
        self.path = path


class MalformedGlobError(HashTreeError):
    """A glob pattern could not be tokenized."""

    code = ErrorCode.MALFORMED_GLOB

    def __init__(self, pattern: str, reason: str, **kwargs):
        super().__init__(f"malformed glob {pattern!r}: {reason}", **kwargs)
        self.pattern = pattern


class PathConflictError(HashTreeError):
    """A path expected to be a directory is a file, or the reverse."""

    code = ErrorCode.PATH_CONFLICT

    def __init__(self, path: str, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path


def error_code(err: BaseException | None) -> ErrorCode:
    """Return the :class:`ErrorCode` of *err*.

    ``None`` means success (``OK``).  Exceptions that did not originate in
    hashtree are ``UNKNOWN``.
    """
    if err is None:
        return ErrorCode.OK
    if isinstance(err, HashTreeError):
        return err.code
    return ErrorCode.UNKNOWN
