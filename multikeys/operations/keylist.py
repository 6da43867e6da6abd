"""
Keyfile lists: which public key files to add or remove
"""
from dataclasses import dataclass
from pathlib import Path

from ..errors import ParseError


@dataclass(frozen=True)
class KeyfileEntry:
    path: str
    remove: bool = False

    @property
    def marker(self) -> str:
        return "-" if self.remove else "+"


def parse_keylist(text: str, base_dir: Path) -> list[KeyfileEntry]:
    """
    One keyfile per line, '#' comments allowed. A leading '-' marks the key
    for removal, '+' (or nothing) for adding. Relative paths are taken
    relative to *base_dir*.
    """
    entries = []
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        remove = line[0] == "-"
        if line[0] in "+-":
            line = line[1:].strip()
        if not line:
            continue
        entries.append(KeyfileEntry(str(base_dir / Path(line).expanduser()), remove))
    return entries


def read_keylist(path) -> list[KeyfileEntry]:
    """Read a keyfile list; paths are resolved against the list's own directory."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"{path}: not valid UTF-8 ({exc.reason})") from exc
    return parse_keylist(text, p.parent)
