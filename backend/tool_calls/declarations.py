"""
Tool surface exposed to the remote peer.

Contents:
- Request / response records exchanged with the peer
- One typed argument struct per tool (tagged union keyed by tool name)
- parse_arguments(): validation at the dispatch boundary
- FUNCTION_DECLARATIONS: schema declared during the handshake

No side effects live here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Union

from spec import (
    DIAGNOSTIC_MODE_DEFAULT,
    DIAGNOSTIC_MODES,
    THEME_COLORS,
    TOOL_LOCK_SYSTEM,
    TOOL_RUN_SYSTEM_DIAGNOSTICS,
    TOOL_SET_SYSTEM_THEME,
    TOOL_UNLOCK_SYSTEM,
)


# -------------------------
# Exceptions
# -------------------------

class ToolCallError(Exception):
    """Base class for tool call errors."""


class UnknownTool(ToolCallError):
    """Raised when the requested tool name is not part of the surface."""


class InvalidArguments(ToolCallError):
    """Raised when arguments are missing, mistyped, or outside their enum."""


# -------------------------
# Wire records
# -------------------------

@dataclass(frozen=True)
class ToolCallRequest:
    """One function call requested by the peer."""
    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallResponse:
    """Exactly one per request; id and name always echo the request."""
    id: str
    name: str
    result: str


# -------------------------
# Typed arguments
# -------------------------

@dataclass(frozen=True)
class SetSystemThemeArgs:
    color: str


@dataclass(frozen=True)
class RunSystemDiagnosticsArgs:
    mode: str = DIAGNOSTIC_MODE_DEFAULT


@dataclass(frozen=True)
class LockSystemArgs:
    reason: str | None = None


@dataclass(frozen=True)
class UnlockSystemArgs:
    code: str | None = None


ToolArguments = Union[
    SetSystemThemeArgs,
    RunSystemDiagnosticsArgs,
    LockSystemArgs,
    UnlockSystemArgs,
]


def _optional_str(args: Mapping[str, Any], key: str) -> str | None:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArguments(f"{key} must be a string, got {type(value).__name__}")
    return value


def _enum_str(
    args: Mapping[str, Any],
    key: str,
    allowed: tuple[str, ...],
    *,
    default: str | None = None,
) -> str:
    value = _optional_str(args, key)
    if value is None:
        if default is None:
            raise InvalidArguments(f"missing required argument: {key}")
        return default
    if value not in allowed:
        raise InvalidArguments(f"{key}={value!r} not in {list(allowed)}")
    return value


_PARSERS: dict[str, Callable[[Mapping[str, Any]], ToolArguments]] = {
    TOOL_SET_SYSTEM_THEME: lambda a: SetSystemThemeArgs(
        color=_enum_str(a, "color", THEME_COLORS),
    ),
    TOOL_RUN_SYSTEM_DIAGNOSTICS: lambda a: RunSystemDiagnosticsArgs(
        mode=_enum_str(a, "mode", DIAGNOSTIC_MODES, default=DIAGNOSTIC_MODE_DEFAULT),
    ),
    TOOL_LOCK_SYSTEM: lambda a: LockSystemArgs(reason=_optional_str(a, "reason")),
    TOOL_UNLOCK_SYSTEM: lambda a: UnlockSystemArgs(code=_optional_str(a, "code")),
}


def parse_arguments(name: str, arguments: Mapping[str, Any] | None) -> ToolArguments:
    """
    Validate a raw argument payload for the named tool.

    Raises:
        UnknownTool if name is not declared.
        InvalidArguments if the payload does not fit the tool's struct.
    """
    parser = _PARSERS.get(name)
    if parser is None:
        raise UnknownTool(name)
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        raise InvalidArguments(f"arguments must be an object, got {type(arguments).__name__}")
    return parser(arguments)


# -------------------------
# Handshake declarations
# -------------------------

FUNCTION_DECLARATIONS: tuple[dict[str, Any], ...] = (
    {
        "name": TOOL_SET_SYSTEM_THEME,
        "description": "Changes the interface color theme.",
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "color": {
                    "type": "STRING",
                    "enum": list(THEME_COLORS),
                    "description": "The color theme.",
                },
            },
            "required": ["color"],
        },
    },
    {
        "name": TOOL_RUN_SYSTEM_DIAGNOSTICS,
        "description": "Run system diagnostics.",
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "mode": {
                    "type": "STRING",
                    "enum": list(DIAGNOSTIC_MODES),
                    "description": "Diagnostic mode",
                },
            },
        },
    },
    {
        "name": TOOL_LOCK_SYSTEM,
        "description": "Lock system interface.",
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "reason": {"type": "STRING", "description": "Reason for locking"},
            },
        },
    },
    {
        "name": TOOL_UNLOCK_SYSTEM,
        "description": "Unlock system interface.",
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "code": {"type": "STRING", "description": "Unlock code"},
            },
        },
    },
)
