"""
Publishing a reconciled authorized_keys file

backup (best effort) → upload to <file>-new → check its size → mv over <file>.
The live file is only ever replaced by renaming a verified staged copy over it.
"""
import posixpath
import shlex
from datetime import date
from enum import Enum
from typing import Optional, TYPE_CHECKING

from ..errors import MultikeysError, RemoteCommandError, TransferError, VerificationError
from ..utils.logging import log, vlog, warn, error

if TYPE_CHECKING:
    from ..core.connection import SSHConnection
    from .keyfile import AuthorizedKeys


class CommitState(Enum):
    CLEAN = "clean"
    BACKUP_REQUESTED = "backup-requested"
    STAGED = "staged"
    VERIFIED = "verified"
    ACTIVATED = "activated"
    FAILED = "failed"


def backup_path(authfile: str, day: date) -> str:
    return f"{authfile}-{day:%Y-%m-%d}.bak"


def staged_path(authfile: str) -> str:
    return f"{authfile}-new"


class CommitProtocol:
    """One commit attempt of *keys* to the host behind *conn*."""

    def __init__(self, conn: "SSHConnection", keys: "AuthorizedKeys",
                 today: Optional[date] = None):
        self.conn = conn
        self.keys = keys
        self.today = today or date.today()
        self.state = CommitState.CLEAN

    def run(self) -> CommitState:
        if not self.keys.changed:
            log("Nothing has changed. Skipping uploading to server.")
            return self.state
        try:
            self._backup()
            wanted = self._stage()
            self._verify(wanted)
            self._activate()
        except MultikeysError as exc:
            error(f"Commit of {self.keys.path} failed in state {self.state.value}: {exc}")
            self.state = CommitState.FAILED
            return self.state
        self.keys.changed = False
        return self.state

    # ── steps ───────────────────────────────────────────────────────────────

    def _backup(self):
        authfile = self.keys.path
        backup = backup_path(authfile, self.today)
        self.state = CommitState.BACKUP_REQUESTED
        log(f"Creating a backup to {backup} if not already done today …")
        cmd = f"test -f {shlex.quote(backup)} || cp -p {shlex.quote(authfile)} {shlex.quote(backup)}"
        try:
            self.conn.exec(cmd)
        except MultikeysError as exc:
            warn(f"backup failed, continuing anyway: {exc}")

    def _stage(self) -> int:
        authfile = self.keys.path
        staged = staged_path(authfile)
        parent = posixpath.dirname(authfile)
        try:
            if parent:
                q = shlex.quote(parent)
                self.conn.exec(f"test -d {q} || mkdir -p -m 700 {q}")
            log(f"Uploading {len(self.keys)} key(s) to {staged} …")
            self.conn.sftp_write_text(staged, self.keys.render())
        except (RemoteCommandError, IOError) as exc:
            raise TransferError(f"could not stage {staged}: {exc}") from exc
        self.state = CommitState.STAGED
        return self.keys.wanted_size()

    def _verify(self, wanted: int):
        staged = staged_path(self.keys.path)
        try:
            attrs = self.conn.sftp_stat(staged)
        except FileNotFoundError as exc:
            raise VerificationError(f"{staged} does not exist after upload") from exc
        except IOError as exc:
            raise TransferError(f"could not stat {staged}: {exc}") from exc
        size = attrs.st_size or 0
        vlog(f"  {staged}: {size} byte(s), expected at least {wanted}")
        if size < wanted:
            raise VerificationError(f"{staged} has {size} byte(s), expected at least {wanted}")
        self.state = CommitState.VERIFIED

    def _activate(self):
        authfile = self.keys.path
        staged = staged_path(authfile)
        log(f"File does exist and has correct size, moving to {authfile} …")
        try:
            self.conn.exec(f"mv -f {shlex.quote(staged)} {shlex.quote(authfile)}")
        except RemoteCommandError as exc:
            raise TransferError(f"could not activate {staged}: {exc}") from exc
        self.state = CommitState.ACTIVATED
