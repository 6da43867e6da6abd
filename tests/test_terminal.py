"""
Tests for the interactive prompts (line-based fallback, no tty).
"""
import io
import unittest
from contextlib import redirect_stdout
from unittest import mock

from multikeys.utils import terminal


class TestAskContinue(unittest.TestCase):

    def _ask(self, typed):
        with mock.patch.object(terminal.sys, "stdin", io.StringIO(typed)), \
                redirect_stdout(io.StringIO()):
            return terminal.ask_continue()

    def test_return_continues(self):
        self.assertEqual(self._ask("\n"), "continue")

    def test_skip(self):
        self.assertEqual(self._ask("s\n"), "skip")
        self.assertEqual(self._ask("S\n"), "skip")

    def test_quit(self):
        self.assertEqual(self._ask("q\n"), "quit")

    def test_unknown_keys_are_ignored(self):
        self.assertEqual(self._ask("x\ny\ns\n"), "skip")

    def test_eof_quits(self):
        self.assertEqual(self._ask(""), "quit")


class TestPromptPassword(unittest.TestCase):

    def test_masked_prompt(self):
        with mock.patch.object(terminal.getpass, "getpass", return_value="s3cret") as gp:
            self.assertEqual(terminal.prompt_password("root@web1"), "s3cret")
        self.assertIn("root@web1", gp.call_args[0][0])

    def test_interrupt_means_skip(self):
        with mock.patch.object(terminal.getpass, "getpass", side_effect=KeyboardInterrupt), \
                redirect_stdout(io.StringIO()):
            self.assertEqual(terminal.prompt_password("root@web1"), "")


if __name__ == "__main__":
    unittest.main()
