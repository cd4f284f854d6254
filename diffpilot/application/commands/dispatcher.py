"""Command dispatcher - routes chat commands to the workflow and renders replies.

Transport independent: the Telegram adapter (or a test) passes the sender,
the conversation and the raw text, and sends back ``Reply.text``.
"""

import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from diffpilot.application.commands.parser import CommandName, parse_command
from diffpilot.application.projects.registry import ProjectRegistry
from diffpilot.application.workflow.diff_utils import diff_preview
from diffpilot.application.workflow.dto import (
    AnalysisOutcome,
    ApplyOutcome,
    CancelOutcome,
    OutcomeStatus,
    PreviewOutcome,
    RequirementOutcome,
    StatusOutcome,
    WorkflowOutcome,
)
from diffpilot.application.workflow.use_case import WorkflowOrchestrator
from diffpilot.domain.entities.project import ProjectPreset
from diffpilot.domain.errors import ToolCallError
from diffpilot.domain.ports.tool_server import ToolServerPort

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong while processing the command. Please try again."

HELP_TEXT = """Three-step change workflow
1. /change <requirement> - analyze the change
2. /dry-run - preview the diff (nothing is written)
3. /apply - apply the previewed diff

Projects
/project list - show projects
/project set <alias> <path> - add a project
/project use <alias> - switch the active project
/project presets - show preset projects
/project load <alias> - add and select a preset

Other
/status - where the current flow stands
/cancel - drop the current flow
/req <text> - structure a client requirement
/tools - list tool server tools"""

_REJECTION_TEXT: dict[str, str] = {
    "no_active_project": (
        "No active project.\n"
        "Add one with /project set <alias> <path> and select it with /project use <alias>."
    ),
    "empty_requirement": "Please describe the change: /change <requirement>",
    "flow_in_progress": (
        "A change flow is already in progress.\n"
        "Continue with /dry-run and /apply, or run /cancel to start over."
    ),
    "operation_in_progress": "Still working on the previous command, please wait.",
    "run_start_change_first": "No change in progress. Start with /change <requirement>.",
    "run_preview_first": "The diff has not been previewed yet. Run /dry-run first; /apply only works after a preview.",
    "diff_already_generated": "A diff is already waiting. Run /apply to apply it or /cancel to start over.",
}

_FAILURE_TEXT: dict[str, str] = {
    "start_change": "Analysis failed, see server log.",
    "preview": "Dry run failed, see server log.",
    "apply": "Applying the changes failed, see server log.",
    "structure_requirement": "Requirement analysis failed, see server log.",
}

_NEXT_COMMAND: dict[str, str] = {
    "start_change": "/change <requirement>",
    "preview": "/dry-run",
    "apply": "/apply",
}


@dataclass
class Reply:
    """Text to send back to the conversation."""

    text: str
    ok: bool = True


Handler = Callable[[object, object, str], Awaitable[Reply]]


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def render_rejection(outcome: WorkflowOutcome) -> Reply:
    text = _REJECTION_TEXT.get(outcome.reason or "", outcome.message or GENERIC_ERROR)
    return Reply(text, ok=False)


def render_failure(outcome: WorkflowOutcome) -> Reply:
    text = _FAILURE_TEXT.get(outcome.operation, GENERIC_ERROR)
    if outcome.reason == "tool_timeout":
        text = f"{text}\nThe tool server did not answer in time."
    return Reply(text, ok=False)


def render_analysis(outcome: AnalysisOutcome) -> str:
    lines = [f"Project: {outcome.project_alias}", "", "Requirement summary", outcome.summary or outcome.requirement or ""]
    lines += ["", "Expected scope"]
    scope = outcome.files or outcome.modules
    lines.append(_bullets(scope) if scope else "(details will be shown by /dry-run)")
    if outcome.estimated_complexity:
        lines += ["", f"Complexity: {outcome.estimated_complexity}"]
    lines += ["", "Next: run /dry-run to preview the changes. Do not /apply before previewing."]
    return "\n".join(lines)


def render_preview(outcome: PreviewOutcome, preview_chars: int = 500) -> str:
    lines = ["Diff preview", ""]
    if outcome.changed_files:
        lines += ["Files to be modified", _bullets(outcome.changed_files), ""]
    preview, truncated = diff_preview(outcome.diff or "", preview_chars)
    lines += ["Changes", preview + ("\n...(truncated)" if truncated else ""), ""]
    lines += [
        "Nothing has been applied yet.",
        "Check that the changes match the requirement, then run /apply.",
    ]
    return "\n".join(lines)


def render_apply(outcome: ApplyOutcome) -> str:
    lines = ["Changes applied."]
    if outcome.applied_files:
        lines += ["", "Modified files", _bullets(outcome.applied_files)]
    if outcome.summary:
        lines += ["", outcome.summary]
    return "\n".join(lines)


def render_cancel(outcome: CancelOutcome) -> str:
    if not outcome.cancelled:
        return "Nothing to cancel."
    return "Change flow cancelled. All pending data was cleared.\nStart again with /change <requirement>."


def render_status(outcome: StatusOutcome) -> str:
    lines = [f"Active project: {outcome.project_alias or '(none)'}", f"Step: {outcome.step.value}"]
    if outcome.requirement:
        lines.append(f"Requirement: {outcome.requirement}")
    if outcome.pending:
        lines.append(f"Running: {outcome.pending}")
    elif outcome.expected_next:
        lines.append(f"Next: {_NEXT_COMMAND.get(outcome.expected_next, outcome.expected_next)}")
    return "\n".join(lines)


def render_requirement(content: Any) -> str:
    if content is None:
        return "No result"
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        if content.get("message"):
            return str(content["message"])
    return json.dumps(content, indent=2, ensure_ascii=False)


class CommandDispatcher:
    """Maps slash commands onto orchestrator and registry operations."""

    def __init__(
        self,
        orchestrator: WorkflowOrchestrator,
        projects: ProjectRegistry,
        tool_server: ToolServerPort | None = None,
        presets: Sequence[ProjectPreset] = (),
        diff_preview_chars: int = 500,
    ) -> None:
        self._orchestrator = orchestrator
        self._projects = projects
        self._tool_server = tool_server
        self._presets = list(presets)
        self._diff_preview_chars = diff_preview_chars
        self._handlers: dict[CommandName, Handler] = {
            CommandName.CHANGE: self._change,
            CommandName.PREVIEW: self._preview,
            CommandName.APPLY: self._apply,
            CommandName.CANCEL: self._cancel,
            CommandName.STATUS: self._status,
            CommandName.PROJECT: self._project,
            CommandName.REQ: self._req,
            CommandName.TOOLS: self._tools,
            CommandName.START: self._start,
            CommandName.HELP: self._help,
            CommandName.PICK: self._pick,
        }

    @property
    def presets(self) -> list[ProjectPreset]:
        return list(self._presets)

    async def handle(self, user_id: object, conversation_id: object, text: str) -> Reply | None:
        """Run a command; None if ``text`` is not a slash command."""
        command = parse_command(text)
        if command is None:
            return None
        if command.name is None:
            return Reply(f"Unknown command /{command.keyword}. Send /help for the list of commands.", ok=False)

        handler = self._handlers[command.name]
        try:
            return await handler(user_id, conversation_id, command.argument)
        except Exception as e:
            logger.error("Command /%s raised an exception: %s", command.keyword, e, exc_info=True)
            return Reply(GENERIC_ERROR, ok=False)

    # -- workflow ------------------------------------------------------------

    async def _change(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        outcome = await self._orchestrator.start_change(user_id, conversation_id, argument)
        return self._render(outcome, render_analysis)

    async def _preview(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        outcome = await self._orchestrator.preview(user_id, conversation_id)
        return self._render(outcome, lambda o: render_preview(o, self._diff_preview_chars))

    async def _apply(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        outcome = await self._orchestrator.apply(user_id, conversation_id)
        return self._render(outcome, render_apply)

    async def _cancel(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        return Reply(render_cancel(self._orchestrator.cancel(user_id, conversation_id)))

    async def _status(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        return Reply(render_status(self._orchestrator.status(user_id, conversation_id)))

    async def _req(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        if not argument:
            return Reply("Please provide the requirement text: /req <text>", ok=False)
        outcome: RequirementOutcome = await self._orchestrator.structure_requirement(argument)
        return self._render(outcome, lambda o: render_requirement(o.content))

    @staticmethod
    def _render(outcome: WorkflowOutcome, render: Callable[[Any], str]) -> Reply:
        if outcome.status is OutcomeStatus.OK:
            return Reply(render(outcome))
        if outcome.status is OutcomeStatus.REJECTED:
            return render_rejection(outcome)
        if outcome.status is OutcomeStatus.DISCARDED:
            return Reply("The flow was cancelled before the tool finished; its result was discarded.", ok=False)
        return render_failure(outcome)

    # -- projects ------------------------------------------------------------

    async def _project(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        parts = argument.split(None, 2)
        sub = parts[0].lower() if parts else "list"

        if sub == "set":
            if len(parts) < 3:
                return Reply("Usage: /project set <alias> <path>", ok=False)
            entry = self._projects.register(user_id, parts[1], parts[2])
            return Reply(f"Project '{entry.alias}' saved.\nPath: {entry.path}")

        if sub == "use":
            if len(parts) < 2:
                return Reply("Usage: /project use <alias>", ok=False)
            alias = parts[1]
            if not self._projects.set_active(user_id, alias):
                return Reply(f"Project '{alias}' does not exist. Add it with /project set first.", ok=False)
            entry = self._projects.get_active(user_id)
            return Reply(f"Switched to project '{alias}'.\nPath: {entry.path if entry else ''}")

        if sub == "list":
            return Reply(self._render_projects(user_id))

        if sub == "presets":
            if not self._presets:
                return Reply("No preset projects are configured.")
            lines = ["Preset projects", ""]
            for preset in self._presets:
                suffix = f" - {preset.description}" if preset.description else ""
                lines.append(f"- {preset.alias}: {preset.path}{suffix}")
            lines += ["", "Add one with /project load <alias>."]
            return Reply("\n".join(lines))

        if sub == "load":
            if len(parts) < 2:
                return Reply("Usage: /project load <alias>", ok=False)
            preset = next((p for p in self._presets if p.alias == parts[1]), None)
            if preset is None:
                return Reply(f"No preset named '{parts[1]}'. See /project presets.", ok=False)
            self._projects.register(user_id, preset.alias, preset.path)
            self._projects.set_active(user_id, preset.alias)
            return Reply(f"Preset '{preset.alias}' added and selected.\nPath: {preset.path}")

        return Reply("Unknown subcommand. Use /project list, set, use, presets or load.", ok=False)

    def _render_projects(self, user_id: object) -> str:
        projects = self._projects.list(user_id)
        if not projects:
            return "No projects yet.\nUsage: /project set <alias> <path>"
        lines = ["Projects", ""]
        for project in projects:
            marker = "x" if project.is_active else " "
            lines.append(f"[{marker}] {project.alias}\n    {project.path}")
        active = next((p.alias for p in projects if p.is_active), None)
        lines.append("")
        lines.append(f"Active: {active}" if active else "No active project selected.")
        return "\n".join(lines)

    # -- misc ----------------------------------------------------------------

    async def _tools(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        if self._tool_server is None:
            return Reply("Tool server is not configured.", ok=False)
        try:
            tools = await self._tool_server.list_tools()
        except ToolCallError as e:
            logger.error("Listing tools failed: %s", e)
            return Reply("Could not list tools, see server log.", ok=False)
        if not tools:
            return Reply("The tool server advertises no tools.")
        lines = ["Available tools", ""]
        for tool in tools:
            name = tool.get("name", "?") if isinstance(tool, dict) else str(tool)
            description = tool.get("description") if isinstance(tool, dict) else None
            lines.append(f"- {name}" + (f": {description}" if description else ""))
        return Reply("\n".join(lines))

    async def _start(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        return Reply(
            "Welcome! This bot analyzes, previews and applies code changes in your projects.\n\n"
            + self._render_projects(user_id)
            + "\n\nSend /help for all commands."
        )

    async def _help(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        return Reply(HELP_TEXT)

    async def _pick(self, user_id: object, conversation_id: object, argument: str) -> Reply:
        return Reply(
            "/pick is deprecated.\n\n"
            "Use the three-step workflow instead:\n"
            "1. /change <requirement>\n2. /dry-run\n3. /apply\n\n"
            "Run /cancel to drop a flow.",
            ok=False,
        )
