"""
What to do on each host once it is reached
"""
import subprocess
import sys
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from .. import config as _cfg
from ..errors import RemoteCommandError
from ..utils.logging import log, warn, error
from .keyfile import AuthorizedKeys
from .keylist import KeyfileEntry

if TYPE_CHECKING:
    from ..core.connection import SSHConnection
    from ..core.topology import Host


class Action(Enum):
    LIST = "list"
    ADD = "add"
    REMOVE = "remove"
    ADDREMOVE = "addremove"
    HOSTNAME = "hostname"
    SSH = "ssh"
    CMD = "cmd"
    SCRIPT = "script"
    SCP = "scp"

    @property
    def needs_connection(self) -> bool:
        # interactive sessions are handed to the OpenSSH client instead
        return self is not Action.SSH

    @property
    def needs_keyfiles(self) -> bool:
        return self in (Action.ADD, Action.REMOVE, Action.ADDREMOVE)

    @property
    def needs_argument(self) -> bool:
        return self in (Action.CMD, Action.SCRIPT, Action.SCP)


@dataclass(frozen=True)
class Job:
    action: Action
    keyfiles: tuple[KeyfileEntry, ...] = ()
    argument: Optional[str] = None  # command for cmd, local path for script/scp
    dest: Optional[str] = None      # remote path for scp
    dry_run: bool = False


# ── authorized_keys ──────────────────────────────────────────────────────────

def do_list(job: Job, host: "Host", conn: "SSHConnection", chain: tuple) -> bool:
    keys = AuthorizedKeys.load(conn)
    for comment in keys.comments():
        print(comment, flush=True)
    return True


def _reconcile(job: Job, conn: "SSHConnection") -> bool:
    keys = AuthorizedKeys.load(conn)
    ok = True
    for entry in job.keyfiles:
        if job.action is Action.ADD:
            remove = False
        elif job.action is Action.REMOVE:
            remove = True
        else:
            remove = entry.remove
        applied = keys.remove_keyfile(entry.path) if remove else keys.add_keyfile(entry.path)
        ok = applied and ok
    return keys.commit(conn, dry_run=job.dry_run) and ok


def do_add(job: Job, host: "Host", conn: "SSHConnection", chain: tuple) -> bool:
    return _reconcile(job, conn)


def do_remove(job: Job, host: "Host", conn: "SSHConnection", chain: tuple) -> bool:
    return _reconcile(job, conn)


def do_addremove(job: Job, host: "Host", conn: "SSHConnection", chain: tuple) -> bool:
    return _reconcile(job, conn)


# ── ad-hoc remote work ───────────────────────────────────────────────────────

def do_hostname(job: Job, host: "Host", conn: "SSHConnection", chain: tuple) -> bool:
    out, _ = conn.exec("hostname", timeout=30)
    print(out.strip(), flush=True)
    return True


def _run_and_echo(conn: "SSHConnection", cmd: str) -> bool:
    rc, out, err = conn.run(cmd)
    if out:
        sys.stdout.write(out)
        sys.stdout.flush()
    if err:
        sys.stderr.write(err)
        sys.stderr.flush()
    if rc != 0:
        error(f"{cmd!r} exited with status {rc}")
        return False
    return True


def do_cmd(job: Job, host: "Host", conn: "SSHConnection", chain: tuple) -> bool:
    return _run_and_echo(conn, job.argument)


def do_script(job: Job, host: "Host", conn: "SSHConnection", chain: tuple) -> bool:
    local = Path(job.argument)
    if not local.is_file():
        error(f"Script {local} does not exist.")
        return False
    remote = f"{_cfg.REMOTE_TMP}/multikeys_script_{uuid.uuid4().hex}.sh"
    try:
        conn.sftp_put(str(local), remote)
    except IOError as exc:
        error(f"Could not upload {local} to {remote}: {exc}")
        return False
    try:
        return _run_and_echo(conn, f"sh {remote}")
    finally:
        try:
            conn.sftp_remove(remote)
        except IOError as exc:
            warn(f"could not remove {remote}: {exc}")


def do_scp(job: Job, host: "Host", conn: "SSHConnection", chain: tuple) -> bool:
    local = Path(job.argument)
    if not local.is_file():
        error(f"File {local} does not exist.")
        return False
    remote = job.dest or local.name
    log(f"Uploading {local} to {host.spec.host}:{remote} …")
    try:
        conn.sftp_put(str(local), remote)
    except IOError as exc:
        error(f"Could not upload {local}: {exc}")
        return False
    return True


def ssh_command(host: "Host", chain: tuple) -> list[str]:
    """OpenSSH command line reaching *host* through every gateway in *chain*."""
    spec = host.spec
    cmd = ["ssh", "-p", str(spec.port)]
    if _cfg.SSH_KEY_PATH:
        cmd += ["-i", _cfg.SSH_KEY_PATH]
    if chain:
        cmd += ["-J", ",".join(f"{c.spec.user}@{c.spec.host}:{c.spec.port}" for c in chain)]
    cmd.append(f"{spec.user}@{spec.host}")
    return cmd


def do_ssh(job: Job, host: "Host", conn: Optional["SSHConnection"], chain: tuple) -> bool:
    cmd = ssh_command(host, chain)
    if chain:
        log(f"SSH'ing to {host.spec.host} via {' → '.join(c.spec.host for c in chain)} …")
    else:
        log(f"SSH'ing to {host.spec.host} …")
    try:
        p = subprocess.run(cmd, check=False)
    except FileNotFoundError:
        error("ssh binary not found on PATH. Install the OpenSSH client.")
        return False
    # 255 is ssh's own failure; anything else comes from the remote shell
    return p.returncode != 255


HANDLERS = {
    Action.LIST: do_list,
    Action.ADD: do_add,
    Action.REMOVE: do_remove,
    Action.ADDREMOVE: do_addremove,
    Action.HOSTNAME: do_hostname,
    Action.SSH: do_ssh,
    Action.CMD: do_cmd,
    Action.SCRIPT: do_script,
    Action.SCP: do_scp,
}


def dispatch(job: Job, host: "Host", conn: Optional["SSHConnection"], chain: tuple) -> bool:
    """Run the job's action on one host. True on success."""
    return HANDLERS[job.action](job, host, conn, chain)
