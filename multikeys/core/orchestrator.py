"""
Per-host and per-gateway connection handling on top of the topology walker
"""
from typing import Callable, Optional

from .. import config as _cfg
from ..errors import AuthenticationError, HostConnectionError, MultikeysError
from ..operations.actions import Job, dispatch
from ..utils.logging import log, error
from ..utils.terminal import ask_continue, prompt_password
from .connection import SSHConnection
from .topology import Gateway, Host, HostSpec, Outcome, walk


class Orchestrator:
    """
    Visits every host of a topology in order, connecting gateways and hosts
    through the chain built so far, and runs *job* on each host.

    A host that cannot be reached is logged and skipped; a gateway that
    cannot be reached takes its whole subtree with it. Only an explicit
    "quit" in interactive mode stops the run early.
    """

    def __init__(self, job: Job, interactive: bool = False,
                 connection_factory: Callable[..., SSHConnection] = SSHConnection,
                 ask: Callable[[], str] = ask_continue,
                 password_prompt: Callable[[str], str] = prompt_password):
        self.job = job
        self.interactive = interactive
        self.connection_factory = connection_factory
        self.ask = ask
        self.password_prompt = password_prompt

        self.done: list[str] = []
        self.skipped: list[str] = []
        self.failed: list[str] = []
        self.failed_gateways: list[str] = []

    @property
    def ok(self) -> bool:
        return not self.failed and not self.failed_gateways

    def _open(self, spec: HostSpec, chain: tuple) -> Optional[SSHConnection]:
        """Connect to *spec* through the last link of *chain*, re-prompting for a password on auth failure."""
        via = chain[-1] if chain else None
        conn = self.connection_factory(spec, via)
        password = _cfg.SSH_PASSWORD
        while True:
            try:
                conn.connect(password)
                return conn
            except AuthenticationError as exc:
                error(str(exc))
                password = self.password_prompt(f"{spec.user}@{spec.host}")
                if not password:
                    error(f"Error connecting {spec.raw}! Skipping it …")
                    return None
            except HostConnectionError as exc:
                error(str(exc))
                error(f"Error connecting {spec.raw}! Skipping it …")
                return None

    # ── walker callbacks ────────────────────────────────────────────────────

    def connect_gateway(self, node: Gateway, chain: tuple) -> Optional[SSHConnection]:
        conn = self._open(node.spec, chain)
        if conn is None:
            self.failed_gateways.append(node.name)
        return conn

    def visit_host(self, node: Host, chain: tuple) -> Outcome:
        log(f"Host: {node.name}")
        if self.interactive:
            choice = self.ask()
            if choice == "quit":
                log("Quitting at user request.")
                return Outcome.LEAVE
            if choice == "skip":
                log(f"Skipping {node.name}.")
                self.skipped.append(node.name)
                return Outcome.CONTINUE

        conn = None
        if self.job.action.needs_connection:
            conn = self._open(node.spec, chain)
            if conn is None:
                self.failed.append(node.name)
                return Outcome.CONTINUE

        try:
            ok = dispatch(self.job, node, conn, chain)
        except (MultikeysError, IOError) as exc:
            error(f"{node.name}: {exc}")
            ok = False
        finally:
            if conn is not None:
                conn.disconnect()

        (self.done if ok else self.failed).append(node.name)
        return Outcome.CONTINUE

    # ── run ─────────────────────────────────────────────────────────────────

    def run(self, nodes) -> Outcome:
        outcome = walk(nodes, self)
        log(f"{len(self.done)} host(s) done, {len(self.skipped)} skipped, "
            f"{len(self.failed)} failed, {len(self.failed_gateways)} gateway(s) unreachable")
        for name in self.failed:
            error(f"  failed: {name}")
        for name in self.failed_gateways:
            error(f"  unreachable gateway: {name}")
        return outcome
