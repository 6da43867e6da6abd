"""Utilities (logging, terminal prompts)"""
from .logging import log, vlog, warn, error, set_verbose
from .terminal import ask_continue, prompt_password, read_char

__all__ = [
    "log", "vlog", "warn", "error", "set_verbose",
    "ask_continue", "prompt_password", "read_char",
]
