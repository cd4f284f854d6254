"""Domain errors - workflow preconditions and tool server failures."""


class DiffPilotError(Exception):
    """Base class for all diffpilot errors."""


class PreconditionViolation(DiffPilotError):
    """Workflow operation invoked in a step that does not permit it."""

    def __init__(
        self,
        *,
        operation: str,
        step: str,
        reason: str,
        expected_next: str | None = None,
    ) -> None:
        super().__init__(f"{operation} not allowed in step '{step}': {reason}")
        self.operation = operation
        self.step = step
        self.reason = reason
        self.expected_next = expected_next


class ProjectNotFoundError(DiffPilotError):
    """Alias is not registered for the user."""

    def __init__(self, alias: str) -> None:
        super().__init__(f"Project '{alias}' is not registered")
        self.alias = alias


class ToolCallError(DiffPilotError):
    """A tool server call did not produce a result."""

    def __init__(self, message: str, *, tool_name: str | None = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolTimeoutError(ToolCallError):
    """No matching response arrived within the tool's deadline."""

    def __init__(self, tool_name: str, timeout: float) -> None:
        super().__init__(f"Tool '{tool_name}' timed out after {timeout:g}s", tool_name=tool_name)
        self.timeout = timeout


class ToolTransportError(ToolCallError):
    """Tool server could not be spawned, written to, or exited mid-flight."""


class ToolBusinessError(ToolCallError):
    """Tool server answered with a JSON-RPC error or an isError result."""

    def __init__(self, message: str, *, tool_name: str | None = None, detail: object = None) -> None:
        super().__init__(message, tool_name=tool_name)
        self.detail = detail


class SessionStateError(DiffPilotError):
    """Workflow session artifacts do not match its step."""
