"""
Gateway/host topology: host specs, the host-list parser and the walker

A host list is a text file with one directive per line:

    # comment
    gateway [user@]gw1[:port]
        host-a
        gateway gw2          # nested: gw2 is reached through gw1
            admin@host-b:2222
        end
    end
    host-c

Hosts between ``gateway`` and its matching ``end`` are reached through that
gateway; everything else is connected to directly.
"""
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Protocol, Union

from .. import config as _cfg
from ..errors import ParseError
from ..utils.logging import log, warn

_SPEC_RE = re.compile(
    r"^(?:(?P<user>[a-z0-9._-]+)@)?(?P<host>[a-z0-9-]+(?:\.[a-z0-9-]+)*)(?::(?P<port>\d+))?$",
    re.I,
)


@dataclass(frozen=True)
class HostSpec:
    raw: str
    user: str
    host: str
    port: int

    @classmethod
    def parse(cls, raw: str, lineno: Optional[int] = None) -> "HostSpec":
        """Parse ``[user@]host[:port]``; user and port fall back to the config defaults."""
        raw = raw.strip()
        m = _SPEC_RE.match(raw)
        if not m:
            raise ParseError(f"invalid host specification {raw!r}", lineno)
        port = int(m.group("port")) if m.group("port") else _cfg.DEFAULT_PORT
        if not 0 < port < 65536:
            raise ParseError(f"invalid port in {raw!r}", lineno)
        return cls(raw=raw, user=m.group("user") or _cfg.DEFAULT_USER,
                   host=m.group("host"), port=port)

    def __str__(self):
        return self.raw


@dataclass(frozen=True)
class Host:
    spec: HostSpec

    @property
    def name(self) -> str:
        return self.spec.raw


@dataclass(frozen=True)
class Gateway:
    spec: HostSpec
    children: tuple = ()

    @property
    def name(self) -> str:
        return self.spec.raw


Node = Union[Host, Gateway]


# ── parsing ─────────────────────────────────────────────────────────────────

def _clean_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (lineno, line) with comments and surrounding whitespace removed, skipping blanks."""
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.split("#", 1)[0].strip()
        if line:
            yield lineno, line


def _parse_block(lines: Iterator[tuple[int, str]], depth: int) -> tuple[Node, ...]:
    """
    Consume lines until the ``end`` closing this block (or end of input at
    the top level). Each nested ``gateway`` recurses on the same iterator.
    """
    nodes: list[Node] = []
    for lineno, line in lines:
        words = line.split()
        if words[0] == "end" and len(words) == 1:
            if depth == 0:
                raise ParseError("'end' without a matching 'gateway'", lineno)
            return tuple(nodes)
        if words[0] == "gateway":
            if len(words) != 2:
                raise ParseError("expected 'gateway <[user@]host[:port]>'", lineno)
            spec = HostSpec.parse(words[1], lineno)
            nodes.append(Gateway(spec, _parse_block(lines, depth + 1)))
        else:
            nodes.append(Host(HostSpec.parse(line, lineno)))
    if depth > 0:
        warn(f"host list: {depth} gateway block(s) not closed with 'end'")
    return tuple(nodes)


def parse_hostlist(text: str) -> tuple[Node, ...]:
    """Parse host-list text into a tuple of top-level nodes."""
    return _parse_block(_clean_lines(text), 0)


def read_hostlist(path) -> tuple[Node, ...]:
    """Read and parse a host-list file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"{path}: not valid UTF-8 ({exc.reason})") from exc
    return parse_hostlist(text)


def single_host(host: str, gateway: Optional[str] = None) -> tuple[Node, ...]:
    """Topology for one host given on the command line, optionally behind a gateway."""
    node = Host(HostSpec.parse(host))
    if gateway:
        return (Gateway(HostSpec.parse(gateway), (node,)),)
    return (node,)


def wrap_in_gateway(nodes: tuple[Node, ...], gateway: str) -> tuple[Node, ...]:
    """Put a whole topology behind one more gateway."""
    return (Gateway(HostSpec.parse(gateway), tuple(nodes)),)


def iter_hosts(nodes) -> Iterator[Host]:
    """All Host leaves in traversal order."""
    for node in nodes:
        if isinstance(node, Gateway):
            yield from iter_hosts(node.children)
        else:
            yield node


# ── traversal ───────────────────────────────────────────────────────────────

class Outcome(Enum):
    CONTINUE = "continue"
    LEAVE = "leave"  # user asked to quit: unwind the whole traversal


class Visitor(Protocol):
    def connect_gateway(self, node: Gateway, chain: tuple):
        """Return an open connection, or None when the gateway is unreachable."""

    def visit_host(self, node: Host, chain: tuple) -> Outcome:
        ...


def walk(nodes, visitor: Visitor, chain: tuple = ()) -> Outcome:
    """
    Depth-first, pre-order traversal. A gateway's children are visited only
    after its own connection succeeded, through a chain that ends with it.
    Every gateway connection is closed by the frame that opened it.
    """
    for node in nodes:
        if isinstance(node, Gateway):
            log(f"Gateway: {node.name}")
            conn = visitor.connect_gateway(node, chain)
            if conn is None:
                warn(f"skipping everything behind gateway {node.name}")
                continue
            try:
                outcome = walk(node.children, visitor, chain + (conn,))
            finally:
                conn.disconnect()
            if outcome is Outcome.LEAVE:
                return outcome
        else:
            if visitor.visit_host(node, chain) is Outcome.LEAVE:
                return Outcome.LEAVE
    return Outcome.CONTINUE
