"""
In-memory authorized_keys file of one account on one host
"""
from pathlib import Path
from typing import Iterator, Optional, Union, TYPE_CHECKING

from .. import config as _cfg
from ..errors import KeyParseError, TransferError
from ..utils.logging import log, vlog, warn, error
from .commit import CommitProtocol, CommitState
from .keyline import KeyLine, is_key_line, parse_key_line

if TYPE_CHECKING:
    from ..core.connection import SSHConnection

# Lines of the remote file that are not keys are kept as plain strings
Entry = Union[KeyLine, str]


class AuthorizedKeys:
    """
    Ordered entries of a remote authorized_keys file plus a `changed` flag.

    Keys are identified by their base64 payload only, so a known key with a
    new comment or new options replaces the old line instead of being added
    twice.
    """

    def __init__(self, path: Optional[str] = None, lines: Optional[list[str]] = None):
        self.path = path or _cfg.AUTHKEYS_FILE
        self.changed = False
        self._entries: list[Entry] = []
        for line in lines or []:
            self._entries.append(self._ingest(line))

    @staticmethod
    def _ingest(line: str) -> Entry:
        text = line.rstrip("\r\n")
        if is_key_line(text):
            try:
                return parse_key_line(text)
            except KeyParseError:
                warn(f"keeping unparseable line as-is: {text[:60]!r}")
        return text

    @classmethod
    def load(cls, conn: "SSHConnection", path: Optional[str] = None) -> "AuthorizedKeys":
        """Read the remote file; a missing file just means no keys yet."""
        path = path or _cfg.AUTHKEYS_FILE
        try:
            content = conn.sftp_read_text(path)
        except FileNotFoundError:
            log(f"{path} does not exist; assuming no keys are stored on the server")
            return cls(path)
        except IOError as exc:
            raise TransferError(f"could not read {path}: {exc}") from exc
        return cls(path, content.splitlines())

    # ── views ───────────────────────────────────────────────────────────────

    @property
    def keys(self) -> list[KeyLine]:
        return [e for e in self._entries if isinstance(e, KeyLine)]

    def comments(self) -> Iterator[str]:
        """Comment (everything after the payload) of every key, in file order."""
        for key in self.keys:
            yield key.comment

    def render_lines(self) -> list[str]:
        return [e.render() if isinstance(e, KeyLine) else e for e in self._entries]

    def render(self) -> str:
        return "".join(line + "\n" for line in self.render_lines())

    def wanted_size(self) -> int:
        """Byte size the staged file must at least have."""
        return sum(len(line.encode("utf-8")) + 1 for line in self.render_lines())

    def __len__(self):
        return len(self.keys)

    def _indexes_of(self, payload: str) -> list[int]:
        return [i for i, e in enumerate(self._entries)
                if isinstance(e, KeyLine) and e.payload == payload]

    # ── reconciliation ──────────────────────────────────────────────────────

    def add_key(self, key: KeyLine):
        label = key.comment or key.payload[-12:]
        found = self._indexes_of(key.payload)
        if not found:
            self._entries.append(key)
            self.changed = True
            log(f"Key {label} added.")
            return
        first, dupes = found[0], found[1:]
        for i in reversed(dupes):
            del self._entries[i]
        if dupes:
            self.changed = True
        if self._entries[first].render() == key.render():
            log(f"Key {label} already there, identical. Skipped adding it.")
        else:
            self._entries[first] = key
            self.changed = True
            log(f"Key {label} already there with different options/comment, replacing it.")

    def remove_key(self, key: KeyLine):
        label = key.comment or key.payload[-12:]
        found = self._indexes_of(key.payload)
        if not found:
            log(f"Key {label} is not there. Skipped removing it.")
            return
        for i in reversed(found):
            del self._entries[i]
        self.changed = True
        log(f"Key {label} removed" + (f" ({len(found)} copies)." if len(found) > 1 else "."))

    def _apply_keyfile(self, keyfile, apply) -> bool:
        path = Path(keyfile)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            error(f"Keyfile {keyfile} does not exist.")
            return False
        except (OSError, UnicodeDecodeError) as exc:
            error(f"Can't read keyfile {keyfile}: {exc}")
            return False
        vlog(f"  keyfile {keyfile}: {len(lines)} line(s)")
        try:
            for lineno, line in enumerate(lines, start=1):
                if not is_key_line(line):
                    continue
                try:
                    key = parse_key_line(line)
                except KeyParseError as exc:
                    error(f"{keyfile}:{lineno}: {exc}; ignoring the rest of this keyfile")
                    return False
                apply(key)
            return True
        finally:
            self._collapse_duplicates()

    def _collapse_duplicates(self):
        """Keep only the first line of every payload."""
        seen = set()
        kept: list[Entry] = []
        for entry in self._entries:
            if isinstance(entry, KeyLine):
                if entry.payload in seen:
                    log(f"Dropping duplicate of key {entry.comment or entry.payload[-12:]}.")
                    self.changed = True
                    continue
                seen.add(entry.payload)
            kept.append(entry)
        self._entries = kept

    def add_keyfile(self, keyfile) -> bool:
        """Add (or replace) every key in a local public key file."""
        return self._apply_keyfile(keyfile, self.add_key)

    def remove_keyfile(self, keyfile) -> bool:
        """Remove every copy of every key in a local public key file."""
        return self._apply_keyfile(keyfile, self.remove_key)

    # ── publishing ──────────────────────────────────────────────────────────

    def commit(self, conn: "SSHConnection", dry_run: bool = False) -> bool:
        """Publish pending changes to the host. True when nothing is left unsaved."""
        if dry_run:
            if self.changed:
                log(f"[dry-run] would upload {len(self)} key(s) to {self.path}")
            else:
                log("Nothing has changed. Skipping uploading to server.")
            return True
        return CommitProtocol(conn, self).run() is not CommitState.FAILED
