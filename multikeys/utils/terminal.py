"""
Terminal prompts: single-keystroke choices and masked password entry
"""
import getpass
import sys

try:
    import termios
    import tty
    _HAS_TERMIOS = True
except ImportError:
    _HAS_TERMIOS = False


def read_char() -> str:
    """Read one keystroke without waiting for RETURN (line-based when stdin is not a tty)."""
    if not _HAS_TERMIOS or not sys.stdin.isatty():
        line = sys.stdin.readline()
        if not line:
            return "q"  # EOF
        return line[0] if line.strip() else "\r"
    fd = sys.stdin.fileno()
    old = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        return sys.stdin.read(1)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old)


def ask_continue() -> str:
    """
    Ask whether to go on with the next host.
    Returns "continue", "skip" or "quit".
    """
    print("Continue (RETURN), skip this host (s), quit (q)?", flush=True)
    while True:
        ch = read_char()
        if ch in ("\r", "\n"):
            return "continue"
        if ch in ("s", "S"):
            return "skip"
        if ch in ("q", "Q", "\x03", "\x04"):
            return "quit"


def prompt_password(target: str) -> str:
    """Masked password prompt; an empty answer means give up."""
    try:
        return getpass.getpass(f"Password for {target} (RETURN to skip the host): ")
    except (EOFError, KeyboardInterrupt):
        print()
        return ""
