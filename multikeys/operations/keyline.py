"""
Parsing of single authorized_keys lines
"""
import re
from dataclasses import dataclass

from ..errors import KeyParseError

ALGORITHM_PREFIXES = ("ssh-", "ecdsa-", "sk-ssh-", "sk-ecdsa-")

# <options> <algorithm> <base64 payload> <comment>; options and comment are optional
_KEY_RE = re.compile(
    r"(?:^|\s)(?P<algorithm>(?:sk-)?(?:ssh|ecdsa)-\S+)"
    r"\s+(?P<payload>[A-Za-z0-9+/]+={0,3})(?=\s|$)"
    r"(?P<rest>.*)$"
)


@dataclass(frozen=True)
class KeyLine:
    options: str
    algorithm: str
    payload: str
    comment: str
    line: str

    def render(self) -> str:
        return self.line

    def same_key(self, other: "KeyLine") -> bool:
        return self.payload == other.payload


def is_key_line(line: str) -> bool:
    """Cheap pre-check: anything that is not blank or a comment and mentions a key algorithm."""
    s = line.strip()
    if not s or s.startswith("#"):
        return False
    return any(prefix in s for prefix in ALGORITHM_PREFIXES)


def parse_key_line(line: str) -> KeyLine:
    """Parse one authorized_keys line. Raises KeyParseError if it is not a valid key."""
    text = line.strip()
    m = _KEY_RE.search(text)
    if not m:
        raise KeyParseError(f"not a valid public key line: {text[:60]!r}")
    return KeyLine(
        options=text[:m.start("algorithm")].strip(),
        algorithm=m.group("algorithm"),
        payload=m.group("payload"),
        comment=m.group("rest").strip(),
        line=text,
    )
