"""Command Parser - slash commands typed in a chat."""

import re
from dataclasses import dataclass
from enum import Enum


class CommandName(Enum):
    """Chat commands understood by the bot."""

    CHANGE = "change"  # /change <requirement> - analyze a change
    PREVIEW = "preview"  # /dry-run - generate the diff without applying it
    APPLY = "apply"  # /apply - apply the previewed diff
    CANCEL = "cancel"  # /cancel - drop the current flow
    STATUS = "status"  # /status - show where the flow is
    PROJECT = "project"  # /project set|use|list|presets|load
    REQ = "req"  # /req <text> - structure a client requirement
    TOOLS = "tools"  # /tools - list tool server tools
    START = "start"
    HELP = "help"
    PICK = "pick"  # deprecated


_KEYWORDS: dict[str, CommandName] = {
    "change": CommandName.CHANGE,
    "dry-run": CommandName.PREVIEW,
    "dry_run": CommandName.PREVIEW,
    "dryrun": CommandName.PREVIEW,
    "preview": CommandName.PREVIEW,
    "apply": CommandName.APPLY,
    "cancel": CommandName.CANCEL,
    "status": CommandName.STATUS,
    "project": CommandName.PROJECT,
    "projects": CommandName.PROJECT,
    "req": CommandName.REQ,
    "tools": CommandName.TOOLS,
    "start": CommandName.START,
    "help": CommandName.HELP,
    "pick": CommandName.PICK,
}

# "/dry-run", "/change@my_bot add logging", "/project set web /srv/web"
COMMAND_PATTERN = re.compile(r"^/([A-Za-z][\w-]*)(?:@\w+)?(?:\s+(.*))?$", re.DOTALL)


@dataclass
class ParsedCommand:
    """A slash command; ``name`` is None for unknown keywords."""

    keyword: str
    name: CommandName | None
    argument: str = ""


def parse_command(text: str) -> ParsedCommand | None:
    """Parse a chat message; None when it is not a slash command.

    Example:
        "/change add request logging" -> CHANGE, "add request logging"
        "/project use web"            -> PROJECT, "use web"

    """
    if not text:
        return None
    match = COMMAND_PATTERN.match(text.strip())
    if not match:
        return None
    keyword = match.group(1).lower()
    argument = (match.group(2) or "").strip()
    return ParsedCommand(keyword=keyword, name=_KEYWORDS.get(keyword), argument=argument)
