"""CLI command modules for holarchy.

Each module contains related command handlers used by __main__.py.
"""

from holarchy.cli.commands.graph import cmd_holon, cmd_link, cmd_note, cmd_relate, cmd_trust
from holarchy.cli.commands.pages import cmd_pages
from holarchy.cli.commands.sync import cmd_sync

__all__ = [
    "cmd_holon",
    "cmd_link",
    "cmd_note",
    "cmd_relate",
    "cmd_trust",
    "cmd_pages",
    "cmd_sync",
]
