"""Exception taxonomy and errno classification helpers.

Public entry points degrade instead of raising; these types exist so failures
can be logged with context and so malformed configuration can fail loudly.
"""

from __future__ import annotations

import errno

_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}
_NOT_FOUND_ERRNOS = {errno.ENOENT, errno.ENOTDIR}
_TRANSIENT_ERRNOS = {errno.EBUSY, errno.EAGAIN, errno.ETIMEDOUT, errno.ECONNRESET, errno.EINTR}


class TreedeckError(Exception):
    """Base error carrying a context mapping for logs."""

    def __init__(self, message: str, context: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})


class GitError(TreedeckError):
    """Git missing, not a repository, or a git command failed."""


class FileSystemError(TreedeckError):
    """Filesystem access failed (permission denied, vanished path)."""


class ConfigError(TreedeckError):
    """Configuration could not be validated."""

    def __init__(self, message: str, errors: list[str] | None = None, context: dict[str, object] | None = None) -> None:
        super().__init__(message, context)
        self.errors = list(errors or [])


class WatcherError(TreedeckError):
    """Filesystem watcher could not start or failed while running."""


def _errno_of(exc: BaseException) -> int | None:
    value = getattr(exc, "errno", None)
    return value if isinstance(value, int) else None


def is_permission_error(exc: BaseException) -> bool:
    return isinstance(exc, PermissionError) or _errno_of(exc) in _PERMISSION_ERRNOS


def is_not_found_error(exc: BaseException) -> bool:
    return isinstance(exc, (FileNotFoundError, NotADirectoryError)) or _errno_of(exc) in _NOT_FOUND_ERRNOS


def is_transient_error(exc: BaseException) -> bool:
    return _errno_of(exc) in _TRANSIENT_ERRNOS


def user_message(exc: BaseException) -> str:
    if isinstance(exc, TreedeckError):
        return exc.message
    text = str(exc)
    return text if text else exc.__class__.__name__


def error_details(exc: BaseException) -> dict[str, object]:
    """Flatten an exception (and its cause chain) into a loggable dict."""
    details: dict[str, object] = {
        "type": exc.__class__.__name__,
        "message": user_message(exc),
    }
    if isinstance(exc, TreedeckError) and exc.context:
        details["context"] = dict(exc.context)
    code = _errno_of(exc)
    if code is not None:
        details["errno"] = errno.errorcode.get(code, code)
    filename = getattr(exc, "filename", None)
    if filename:
        details["path"] = str(filename)

    cause = exc.__cause__ or exc.__context__
    seen: set[int] = {id(exc)}
    chain: list[dict[str, object]] = []
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        chain.append({"type": cause.__class__.__name__, "message": user_message(cause)})
        cause = cause.__cause__ or cause.__context__
    if chain:
        details["causes"] = chain
    return details


__all__ = [
    "TreedeckError",
    "GitError",
    "FileSystemError",
    "ConfigError",
    "WatcherError",
    "is_permission_error",
    "is_not_found_error",
    "is_transient_error",
    "user_message",
    "error_details",
]
