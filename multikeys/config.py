"""
Configuration constants for multikeys
"""
import os
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS  ── overridden by YAML config or apply_profile()
# ══════════════════════════════════════════════════════════════════════════════

# Used when a host spec has no "user@" / ":port" part
DEFAULT_USER = "root"
DEFAULT_PORT = 22

# Path to your private key, or None to use ssh-agent / ~/.ssh/id_*
SSH_KEY_PATH: Optional[str] = None
SSH_PASSWORD: Optional[str] = None  # first password tried; prompted on auth failure

CONNECT_TIMEOUT = 20  # seconds

# Remote file that gets reconciled (relative paths are relative to $HOME)
AUTHKEYS_FILE = ".ssh/authorized_keys"

# Remote temp dir for uploaded scripts
REMOTE_TMP = "/tmp"

# Inputs that a profile may pin
HOSTLIST: Optional[str] = None
KEYLIST: Optional[str] = None
INTERACTIVE = False


# ══════════════════════════════════════════════════════════════════════════════
#  GLOBAL CONFIG FILE  ── $XDG_CONFIG_HOME/multikeys/config.yaml
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """Return the global config directory for multikeys."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "multikeys"
    return Path.home() / ".config" / "multikeys"


def get_global_config_file() -> Path:
    return get_global_config_dir() / "config.yaml"


def load_config_file(path: Path) -> dict:
    """Parse a multikeys YAML config file and return its contents as a dict."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"could not load {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    return data


def load_global_config() -> dict:
    """Load the global config, or an empty dict when there is none."""
    cfg_path = get_global_config_file()
    if not cfg_path.is_file():
        return {}
    return load_config_file(cfg_path)


def get_profile(data: dict, profile_name: Optional[str] = None) -> dict:
    """
    Extract a named profile from a config data dict, merged over the
    top-level defaults. With no name (or an unknown one) only the defaults
    are returned.
    """
    merged = dict(data.get("defaults") or {})
    if not profile_name:
        return merged
    profiles = data.get("profiles") or []
    profile = next((p for p in profiles if p.get("name") == profile_name), None)
    if profile is not None:
        merged.update(profile)
    return merged


# ══════════════════════════════════════════════════════════════════════════════
#  APPLY PROFILE  ── mutates module-level variables
# ══════════════════════════════════════════════════════════════════════════════

def apply_profile(profile: dict):
    """
    Apply a profile dict to the module-level config variables.
    Supports keys: user, port, ssh_key, ssh_password, connect_timeout,
                   authkeys_file, remote_tmp, hostlist, keylist, interactive.
    hostlist/keylist are expanded with ~.
    """
    global DEFAULT_USER, DEFAULT_PORT, SSH_KEY_PATH, SSH_PASSWORD
    global CONNECT_TIMEOUT, AUTHKEYS_FILE, REMOTE_TMP
    global HOSTLIST, KEYLIST, INTERACTIVE

    if "user" in profile:
        DEFAULT_USER = str(profile["user"])
    if "port" in profile:
        DEFAULT_PORT = int(profile["port"])
    if "ssh_key" in profile:
        SSH_KEY_PATH = str(Path(profile["ssh_key"]).expanduser()) if profile["ssh_key"] else None
    if "ssh_password" in profile:
        SSH_PASSWORD = str(profile["ssh_password"]) if profile["ssh_password"] else None
    if "connect_timeout" in profile:
        CONNECT_TIMEOUT = int(profile["connect_timeout"])
    if "authkeys_file" in profile:
        AUTHKEYS_FILE = str(profile["authkeys_file"])
    if "remote_tmp" in profile:
        REMOTE_TMP = str(profile["remote_tmp"]).rstrip("/") or "/"
    if "hostlist" in profile:
        HOSTLIST = str(Path(profile["hostlist"]).expanduser()) if profile["hostlist"] else None
    if "keylist" in profile:
        KEYLIST = str(Path(profile["keylist"]).expanduser()) if profile["keylist"] else None
    if "interactive" in profile:
        INTERACTIVE = bool(profile["interactive"])
