"""
CLI commands for scorekit.
"""

from scorekit.cli.generate import generate_command
from scorekit.cli.init import init_command
from scorekit.cli.provisioners import (
    add_provisioner_command,
    list_provisioners_command,
    remove_provisioner_command,
)
from scorekit.cli.resources import deprovision_command, list_resources_command

__all__ = [
    "init_command",
    "generate_command",
    "add_provisioner_command",
    "list_provisioners_command",
    "remove_provisioner_command",
    "list_resources_command",
    "deprovision_command",
]
