"""
Tests for the multikeys command line.

Tests:
  - argument parsing for every action
  - building the host tree and the job from arguments and the config file
  - exit codes of main() (orchestrator mocked out)
  - running the package with python -m
"""
import io
import os
import subprocess
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

import multikeys.config as cfg
from multikeys import __version__
from multikeys.cli import build_job, build_parser, build_topology, load_settings, main
from multikeys.core.topology import Gateway, Host, Outcome
from multikeys.errors import ConfigError, ParseError
from multikeys.operations.actions import Action
from tests.fakes import ED_KEY, preserve_config


# ── Helpers ───────────────────────────────────────────────────────────────────

REPO_ROOT = Path(__file__).parent.parent


class CliTestCase(unittest.TestCase):

    def setUp(self):
        preserve_config(self)
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        patcher = mock.patch.dict(os.environ, {"XDG_CONFIG_HOME": str(self.root / "xdg")})
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmpdir.cleanup()

    def _write(self, name, content):
        p = self.root / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        return str(p)

    def _args(self, *argv):
        return build_parser().parse_args(list(argv))


# ── Tests: parsing ────────────────────────────────────────────────────────────

class TestParser(CliTestCase):

    def test_common_options(self):
        args = self._args("add", "-H", "deploy@web1:2222", "-G", "jump", "-K", "alice.pub",
                          "-i", "-n", "-v", "-p", "prod", "-I", "~/.ssh/id_ops")
        self.assertEqual(args.command, "add")
        self.assertEqual(args.host, "deploy@web1:2222")
        self.assertEqual(args.gateway, "jump")
        self.assertEqual(args.key, "alice.pub")
        self.assertTrue(args.interactive)
        self.assertTrue(args.dry_run)
        self.assertTrue(args.verbose)
        self.assertEqual(args.profile, "prod")
        self.assertEqual(args.identity, "~/.ssh/id_ops")

    def test_cmd_takes_rest_of_line(self):
        args = self._args("cmd", "-H", "host-a", "uptime", "-p")
        self.assertEqual(args.remote_command, ["uptime", "-p"])
        self.assertIsNone(args.profile)

    def test_scp_dest(self):
        args = self._args("scp", "-l", "hosts.txt", "motd", "--dest", "/etc/motd")
        self.assertEqual((args.path, args.dest), ("motd", "/etc/motd"))

    def test_unknown_action(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                self._args("frobnicate")


# ── Tests: settings, topology, job ────────────────────────────────────────────

class TestBuild(CliTestCase):

    def test_single_host(self):
        nodes = build_topology(self._args("list", "-H", "host-a"))
        self.assertEqual(len(nodes), 1)
        self.assertIsInstance(nodes[0], Host)

    def test_single_host_behind_gateway(self):
        nodes = build_topology(self._args("list", "-H", "host-a", "-G", "jump"))
        self.assertIsInstance(nodes[0], Gateway)
        self.assertEqual(nodes[0].children[0].name, "host-a")

    def test_hostlist_with_extra_gateway(self):
        path = self._write("hosts.txt", "gateway g1\n host-a\nend\nhost-b\n")
        nodes = build_topology(self._args("list", "-l", path, "-G", "outer"))
        self.assertEqual(nodes[0].name, "outer")
        self.assertEqual([n.name for n in nodes[0].children], ["g1", "host-b"])

    def test_no_hosts(self):
        with self.assertRaises(ParseError):
            build_topology(self._args("list"))

    def test_hostlist_from_profile(self):
        hosts = self._write("hosts.txt", "host-a\n")
        self._write("xdg/multikeys/config.yaml",
                    f"profiles:\n  - name: lab\n    hostlist: {hosts}\n    user: ops\n")
        args = self._args("list", "-p", "lab")
        load_settings(args)
        nodes = build_topology(args)
        self.assertEqual(nodes[0].spec.user, "ops")

    def test_unknown_profile(self):
        self._write("xdg/multikeys/config.yaml", "profiles:\n  - name: lab\n")
        with self.assertRaises(ConfigError):
            load_settings(self._args("list", "-p", "prod"))

    def test_identity_overrides_config(self):
        self._write("xdg/multikeys/config.yaml", "defaults:\n  ssh_key: /etc/ops_key\n")
        load_settings(self._args("list", "-I", "/tmp/other_key"))
        self.assertEqual(cfg.SSH_KEY_PATH, "/tmp/other_key")

    def test_add_needs_keyfile(self):
        with self.assertRaises(ParseError):
            build_job(self._args("add", "-H", "host-a"))

    def test_single_keyfile(self):
        job = build_job(self._args("remove", "-H", "host-a", "-K", "alice.pub"))
        self.assertIs(job.action, Action.REMOVE)
        self.assertEqual([e.path for e in job.keyfiles], ["alice.pub"])

    def test_keylist(self):
        self._write("keys/alice.pub", ED_KEY + "\n")
        path = self._write("keys/list.txt", "alice.pub\n-bob.pub\n")
        job = build_job(self._args("addremove", "-H", "host-a", "-k", path, "-n"))
        self.assertEqual([e.marker for e in job.keyfiles], ["+", "-"])
        self.assertEqual(job.keyfiles[0].path, str(self.root / "keys" / "alice.pub"))
        self.assertTrue(job.dry_run)

    def test_cmd_needs_command(self):
        with self.assertRaises(ParseError):
            build_job(self._args("cmd", "-H", "host-a"))
        job = build_job(self._args("cmd", "-H", "host-a", "df", "-k"))
        self.assertEqual(job.argument, "df -k")

    def test_script_and_scp(self):
        job = build_job(self._args("script", "-H", "host-a", "fix.sh"))
        self.assertEqual((job.action, job.argument), (Action.SCRIPT, "fix.sh"))
        job = build_job(self._args("scp", "-H", "host-a", "motd", "--dest", "/etc/motd"))
        self.assertEqual((job.argument, job.dest), ("motd", "/etc/motd"))


# ── Tests: main ───────────────────────────────────────────────────────────────

class TestMain(CliTestCase):

    def _main(self, *argv, ok=True, outcome=Outcome.CONTINUE):
        with mock.patch("multikeys.cli.Orchestrator") as orch_cls:
            orch_cls.return_value.run.return_value = outcome
            orch_cls.return_value.ok = ok
            with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()) as err:
                with self.assertRaises(SystemExit) as ctx:
                    main(list(argv))
        return ctx.exception.code, orch_cls, err.getvalue()

    def test_success(self):
        code, orch_cls, _ = self._main("hostname", "-H", "host-a")
        self.assertEqual(code, 0)
        job = orch_cls.call_args[0][0]
        self.assertIs(job.action, Action.HOSTNAME)
        self.assertFalse(orch_cls.call_args.kwargs["interactive"])

    def test_failed_host_exits_nonzero(self):
        code, _, _ = self._main("hostname", "-H", "host-a", ok=False)
        self.assertEqual(code, 1)

    def test_quit_exits_zero(self):
        code, _, _ = self._main("hostname", "-H", "host-a", "-i", ok=False,
                                outcome=Outcome.LEAVE)
        self.assertEqual(code, 0)

    def test_usage_errors(self):
        code, orch_cls, err = self._main("add", "-H", "host-a")
        self.assertEqual(code, 2)
        self.assertIn("need a keyfile", err)
        orch_cls.assert_not_called()

    def test_missing_hostlist(self):
        code, orch_cls, err = self._main("list", "-l", str(self.root / "nope.txt"))
        self.assertEqual(code, 2)
        self.assertIn("nope.txt", err)
        orch_cls.assert_not_called()

    def test_bad_hostlist(self):
        path = self._write("hosts.txt", "host-a\nend\n")
        code, _, err = self._main("list", "-l", path)
        self.assertEqual(code, 2)
        self.assertIn("line 2", err)

    def test_hostlist_not_utf8(self):
        path = self.root / "hosts.txt"
        path.write_bytes(b"host-a\n\xff\xfe\n")
        code, orch_cls, err = self._main("list", "-l", str(path))
        self.assertEqual(code, 2)
        self.assertIn("not valid UTF-8", err)
        orch_cls.assert_not_called()

    def test_keylist_not_utf8(self):
        path = self.root / "keys.txt"
        path.write_bytes(b"alice.pub\n\xff\n")
        code, _, err = self._main("add", "-H", "host-a", "-k", str(path))
        self.assertEqual(code, 2)
        self.assertIn("not valid UTF-8", err)

    def test_interactive_from_config(self):
        self._write("xdg/multikeys/config.yaml", "defaults:\n  interactive: true\n")
        _, orch_cls, _ = self._main("list", "-H", "host-a")
        self.assertTrue(orch_cls.call_args.kwargs["interactive"])

    def test_no_action_prints_help(self):
        with redirect_stdout(io.StringIO()) as out:
            with self.assertRaises(SystemExit) as ctx:
                main([])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("usage:", out.getvalue())


class TestModuleEntryPoint(unittest.TestCase):

    def test_version(self):
        result = subprocess.run(
            [sys.executable, "-m", "multikeys", "--version"],
            cwd=str(REPO_ROOT), capture_output=True, text=True,
            env={**os.environ, "PYTHONPATH": str(REPO_ROOT)},
        )
        self.assertEqual(result.returncode, 0)
        self.assertIn(__version__, result.stdout)


if __name__ == "__main__":
    unittest.main()
