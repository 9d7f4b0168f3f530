"""CLI command modules for Cortex.

Each module holds the handler for one command group.
"""

from cortex.cli.commands.failure import cmd_failure
from cortex.cli.commands.identity import cmd_identity
from cortex.cli.commands.memory import cmd_memory
from cortex.cli.commands.prepare import cmd_prepare
from cortex.cli.commands.sandbox import cmd_sandbox

__all__ = [
    "cmd_failure",
    "cmd_identity",
    "cmd_memory",
    "cmd_prepare",
    "cmd_sandbox",
]
