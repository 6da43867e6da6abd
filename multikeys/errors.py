"""Exception hierarchy for multikeys."""

from typing import Optional


class MultikeysError(Exception):
    """Base exception for multikeys errors."""


class ParseError(MultikeysError):
    """Malformed host list, keyfile list or keyfile line."""

    def __init__(self, message: str, lineno: Optional[int] = None):
        self.lineno = lineno
        if lineno is not None:
            message = f"line {lineno}: {message}"
        super().__init__(message)


class KeyParseError(ParseError):
    """A line that looks like a key but is not a valid authorized_keys entry."""


class HostConnectionError(MultikeysError):
    """Host unreachable, connection refused, name lookup failed, etc."""


class AuthenticationError(HostConnectionError):
    """The host rejected our credentials."""


class RemoteCommandError(MultikeysError):
    """A remote shell command exited non-zero."""

    def __init__(self, cmd: str, rc: int, stderr: str = ""):
        self.cmd = cmd
        self.rc = rc
        self.stderr = stderr
        msg = f"remote command exited {rc}: {cmd!r}"
        if stderr.strip():
            msg += f"\nstderr: {stderr.strip()}"
        super().__init__(msg)


class TransferError(MultikeysError):
    """Upload, stat or activation failed while publishing a file."""


class VerificationError(TransferError):
    """The staged file is missing or smaller than what was written."""


class ConfigError(MultikeysError):
    """The YAML config file could not be read or parsed."""
