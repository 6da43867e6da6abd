"""Operations (key parsing, reconciliation, commit, actions)"""
from .keyline import KeyLine, is_key_line, parse_key_line
from .keyfile import AuthorizedKeys
from .commit import CommitProtocol, CommitState
from .keylist import KeyfileEntry, read_keylist
from .actions import Action, Job, dispatch

__all__ = [
    "KeyLine", "is_key_line", "parse_key_line",
    "AuthorizedKeys",
    "CommitProtocol", "CommitState",
    "KeyfileEntry", "read_keylist",
    "Action", "Job", "dispatch",
]
