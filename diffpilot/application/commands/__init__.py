"""Chat commands: parsing and dispatch."""

from diffpilot.application.commands.dispatcher import CommandDispatcher, Reply
from diffpilot.application.commands.parser import CommandName, ParsedCommand, parse_command

__all__ = ["CommandDispatcher", "CommandName", "ParsedCommand", "Reply", "parse_command"]
