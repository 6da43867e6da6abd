"""Core functionality (connections, topology, orchestration)"""
from .connection import SSHConnection
from .topology import (Gateway, Host, HostSpec, Outcome, parse_hostlist,
                       read_hostlist, single_host, walk, wrap_in_gateway)
from .orchestrator import Orchestrator

__all__ = [
    "SSHConnection",
    "Gateway", "Host", "HostSpec", "Outcome",
    "parse_hostlist", "read_hostlist", "single_host", "walk", "wrap_in_gateway",
    "Orchestrator",
]
