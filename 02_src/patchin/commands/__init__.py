"""Command dispatch module."""

from .dispatcher import Command, CommandAction, CommandDispatcher, ICommandDispatcher
from .gateway import GatewayClient, IGatewayClient
from .table import build_default_commands, command_help

__all__ = [
    "Command",
    "CommandAction",
    "CommandDispatcher",
    "ICommandDispatcher",
    "GatewayClient",
    "IGatewayClient",
    "build_default_commands",
    "command_help",
]
