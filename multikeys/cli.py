#!/usr/bin/env python3
"""
multikeys  —  Distribute SSH authorized_keys across hosts behind gateways
==========================================================================

Actions:
  list       List the comments of all keys in authorized_keys.
  add        Add the key(s) given with -K / -k.
  remove     Remove the key(s) given with -K / -k.
  addremove  Add keys from the keylist, remove those marked with "-".
  hostname   Print the remote hostname.
  ssh        Open an interactive ssh session (OpenSSH client, -J for gateways).
  cmd        Run a command on every host.
  script     Upload and run a local shell script on every host.
  scp        Upload a local file to every host.

Hosts come from -H (one host, optionally behind -G) or from a host list
(-l) with nested "gateway <host>" … "end" blocks.

Run 'multikeys <action> --help' for more details.
"""
import argparse
import sys
from pathlib import Path

from . import __version__
from . import config as _cfg
from .core.orchestrator import Orchestrator
from .core.topology import Outcome, read_hostlist, single_host, wrap_in_gateway
from .errors import ConfigError, ParseError
from .operations.actions import Action, Job
from .operations.keylist import KeyfileEntry, read_keylist
from .utils.logging import set_verbose, vlog


def _fail(msg: str, code: int = 2):
    print(f"error: {msg}", file=sys.stderr)
    sys.exit(code)


# ── parser ───────────────────────────────────────────────────────────────────

def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-H", "--host", metavar="SPEC",
                        help="Host to connect to ([user@]host[:port])")
    common.add_argument("-l", "--hostlist", metavar="FILE",
                        help="File with hosts (and gateway blocks) to connect to")
    common.add_argument("-G", "--gateway", metavar="SPEC",
                        help="Gateway to reach the host(s) through")
    common.add_argument("-K", "--key", metavar="FILE",
                        help="Public key file to add or remove")
    common.add_argument("-k", "--keylist", metavar="FILE",
                        help="File with names of public key files (prefix '-' to remove)")
    common.add_argument("-I", "--identity", metavar="FILE",
                        help="Private key used to log in (default: ssh-agent / ~/.ssh/id_*)")
    common.add_argument("-i", "--interactive", action="store_true",
                        help="Ask before each host")
    common.add_argument("-p", "--profile", metavar="NAME",
                        help="Profile from the global config file")
    common.add_argument("-n", "--dry-run", action="store_true",
                        help="Reconcile keys but do not upload anything")
    common.add_argument("-v", "--verbose", action="store_true",
                        help="Show extra output")
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_options()
    parser = argparse.ArgumentParser(
        prog="multikeys",
        description="Distribute SSH authorized_keys across hosts behind gateways",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="ACTION")

    subparsers.add_parser("list", parents=[common], help="List keys (their comments)")
    subparsers.add_parser("add", parents=[common], help="Add key(s)")
    subparsers.add_parser("remove", parents=[common], help="Remove key(s)")
    subparsers.add_parser("addremove", parents=[common],
                          help='Add keys, then remove keys with "-" before the filename')
    subparsers.add_parser("hostname", parents=[common], help="Print the remote hostname")
    subparsers.add_parser("ssh", parents=[common], help="Open an interactive ssh session")

    cmd_p = subparsers.add_parser("cmd", parents=[common], help="Run a command on every host")
    cmd_p.add_argument("remote_command", nargs=argparse.REMAINDER, metavar="COMMAND",
                       help="Command line to run remotely")

    script_p = subparsers.add_parser("script", parents=[common],
                                     help="Upload and run a shell script on every host")
    script_p.add_argument("path", metavar="SCRIPT", help="Local script file")

    scp_p = subparsers.add_parser("scp", parents=[common], help="Upload a file to every host")
    scp_p.add_argument("path", metavar="FILE", help="Local file")
    scp_p.add_argument("--dest", metavar="PATH",
                       help="Remote path (default: file name in the remote home directory)")
    return parser


# ── building the run ─────────────────────────────────────────────────────────

def load_settings(args):
    """Apply the global config (defaults + optional profile), then CLI overrides."""
    data = _cfg.load_global_config()
    if args.profile:
        names = {p.get("name") for p in data.get("profiles") or []}
        if args.profile not in names:
            raise ConfigError(f"no profile named {args.profile!r} in {_cfg.get_global_config_file()}")
    _cfg.apply_profile(_cfg.get_profile(data, args.profile))
    if args.identity:
        _cfg.SSH_KEY_PATH = str(Path(args.identity).expanduser())


def build_topology(args) -> tuple:
    if args.host:
        return single_host(args.host, args.gateway)
    hostlist = args.hostlist or _cfg.HOSTLIST
    if not hostlist:
        raise ParseError("need a host (-H) or a host list (-l)")
    vlog(f"[config] reading host list {hostlist}")
    nodes = read_hostlist(hostlist)
    if args.gateway:
        nodes = wrap_in_gateway(nodes, args.gateway)
    return nodes


def build_job(args) -> Job:
    action = Action(args.command)
    keyfiles: tuple = ()
    if args.key:
        keyfiles = (KeyfileEntry(args.key),)
    elif args.keylist or _cfg.KEYLIST:
        keyfiles = tuple(read_keylist(args.keylist or _cfg.KEYLIST))
    if action.needs_keyfiles and not keyfiles:
        raise ParseError("need a keyfile (-K) or a keyfile list (-k)")

    argument = None
    if action is Action.CMD:
        argument = " ".join(args.remote_command).strip()
        if not argument:
            raise ParseError("need a command to run")
    elif action in (Action.SCRIPT, Action.SCP):
        argument = args.path
    return Job(action=action, keyfiles=keyfiles, argument=argument,
               dest=getattr(args, "dest", None), dry_run=args.dry_run)


# ── main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    """CLI entry point for multikeys"""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    set_verbose(args.verbose)
    try:
        load_settings(args)
        nodes = build_topology(args)
        job = build_job(args)
    except (ConfigError, ParseError) as exc:
        _fail(str(exc))
    except OSError as exc:
        _fail(f"{exc.filename or ''}: {exc.strerror or exc}")

    orchestrator = Orchestrator(job, interactive=args.interactive or _cfg.INTERACTIVE)
    outcome = orchestrator.run(nodes)
    if outcome is Outcome.LEAVE:
        sys.exit(0)
    sys.exit(0 if orchestrator.ok else 1)


if __name__ == "__main__":
    main()
