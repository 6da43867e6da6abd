"""
SSH connection to one host, optionally tunnelled through a gateway
"""
import socket
from contextlib import contextmanager
from typing import Optional, TYPE_CHECKING

import paramiko

from .. import config as _cfg
from ..errors import AuthenticationError, HostConnectionError, RemoteCommandError
from ..utils.logging import log, vlog

if TYPE_CHECKING:
    from .topology import HostSpec


class SSHConnection:
    """
    Wraps paramiko SSHClient + SFTPClient for a single host.
    When *via* is given, the TCP stream is a direct-tcpip channel opened on
    the gateway's transport instead of a socket of our own.
    """

    def __init__(self, spec: "HostSpec", via: Optional["SSHConnection"] = None):
        self.spec = spec
        self.via = via
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    def __repr__(self):
        return f"<SSHConnection {self.spec.raw}>"

    # ── connection ─────────────────────────────────────────────────────────

    @property
    def connected(self) -> bool:
        return self._ssh is not None

    def connect(self, password: Optional[str] = None):
        """
        Open the connection. Raises AuthenticationError when the host rejects
        our credentials, HostConnectionError for everything else.
        """
        spec = self.spec
        if self.via:
            log(f"[SSH] connecting to {spec.user}@{spec.host}:{spec.port} via {self.via.spec.host} …")
        else:
            log(f"[SSH] connecting to {spec.user}@{spec.host}:{spec.port} …")

        client = paramiko.SSHClient()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kw: dict = dict(hostname=spec.host, port=spec.port, username=spec.user,
                        timeout=_cfg.CONNECT_TIMEOUT, banner_timeout=30, auth_timeout=30,
                        compress=False)
        if _cfg.SSH_KEY_PATH:
            kw["key_filename"] = _cfg.SSH_KEY_PATH
        if password:
            kw["password"] = password

        try:
            if self.via:
                kw["sock"] = self.via.open_tunnel(spec.host, spec.port)
            client.connect(**kw)
        except paramiko.AuthenticationException as exc:
            client.close()
            raise AuthenticationError(f"{spec.raw}: authentication failed ({exc})") from exc
        except (paramiko.SSHException, socket.error) as exc:
            client.close()
            raise HostConnectionError(f"{spec.raw}: {type(exc).__name__}: {exc}") from exc

        self._ssh = client
        vlog(f"[SSH] connected to {spec.host} ✓")

    def open_tunnel(self, host: str, port: int) -> paramiko.Channel:
        """Open a direct-tcpip channel to host:port through this connection."""
        if not self._ssh:
            raise HostConnectionError(f"{self.spec.raw}: not connected")
        transport = self._ssh.get_transport()
        return transport.open_channel("direct-tcpip", (host, port), ("127.0.0.1", 0))

    def disconnect(self):
        try:
            if self._sftp:
                self._sftp.close()
        finally:
            self._sftp = None
            if self._ssh:
                self._ssh.close()
                self._ssh = None
                vlog(f"[SSH] disconnected from {self.spec.host}.")

    def _sftp_client(self) -> paramiko.SFTPClient:
        if not self._ssh:
            raise HostConnectionError(f"{self.spec.raw}: not connected")
        if self._sftp is None:
            vlog("[SSH] opening SFTP session …")
            try:
                self._sftp = self._ssh.open_sftp()
            except paramiko.SSHException as exc:
                raise HostConnectionError(f"{self.spec.raw}: could not open SFTP session: {exc}") from exc
        return self._sftp

    # ── raw exec ────────────────────────────────────────────────────────────

    def run(self, cmd: str, timeout: int = 60) -> tuple[int, str, str]:
        """Run a command; return (exit status, stdout, stderr). Does not raise on rc != 0."""
        if not self._ssh:
            raise HostConnectionError(f"{self.spec.raw}: not connected")
        vlog(f"  $ {cmd}")
        try:
            _, stdout, stderr = self._ssh.exec_command(cmd, timeout=timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            rc = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, socket.error) as exc:
            raise HostConnectionError(f"{self.spec.raw}: {cmd!r} failed: {exc}") from exc
        return rc, out, err

    def exec(self, cmd: str, timeout: int = 60) -> tuple[str, str]:
        """Run a command; return (stdout, stderr). Raises RemoteCommandError on non-zero exit."""
        rc, out, err = self.run(cmd, timeout=timeout)
        if rc != 0:
            raise RemoteCommandError(cmd, rc, err)
        return out, err

    # ── sftp ops ────────────────────────────────────────────────────────────

    @contextmanager
    def _sftp_errors(self, op: str, remote: str):
        # IOError (missing file, permission denied, …) passes through for the caller
        try:
            yield
        except paramiko.SSHException as exc:
            raise HostConnectionError(f"{self.spec.raw}: SFTP {op} {remote} failed: {exc}") from exc

    def sftp_put(self, local: str, remote: str):
        with self._sftp_errors("put", remote):
            self._sftp_client().put(local, remote)

    def sftp_stat(self, remote: str):
        with self._sftp_errors("stat", remote):
            return self._sftp_client().stat(remote)

    def sftp_remove(self, remote: str):
        with self._sftp_errors("remove", remote):
            self._sftp_client().remove(remote)

    def sftp_read_text(self, remote: str) -> str:
        with self._sftp_errors("read", remote):
            with self._sftp_client().open(remote, "r") as f:
                return f.read().decode("utf-8", errors="replace")

    def sftp_write_text(self, remote: str, content: str):
        with self._sftp_errors("write", remote):
            with self._sftp_client().open(remote, "w") as f:
                f.write(content.encode("utf-8"))
