"""
Tool call dispatch.

Responsibilities:
- Map a named ToolCallRequest onto a HUD mutation
- Always produce exactly one ToolCallResponse echoing id and name
- Apply side effects before the response is returned
- Replay the stored response for a repeated request id instead of
  applying the effect twice

Non-responsibilities:
- Sending responses (SessionProtocol owns the channel)
- Deciding session lifecycle; failures here never end a session
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Any, Callable

from hud.events import (
    DiagnosticChanged,
    HudEventType,
    LockChanged,
    ThemeChanged,
)
from hud.state import HudStore
from observability.logger import log_event
from spec import (
    DIAGNOSTIC_DURATION_S,
    TOOL_CALL_ID_MEMORY,
    TOOL_RESULT_FAILED,
    TOOL_RESULT_SUCCESS,
)
from tool_calls.declarations import (
    LockSystemArgs,
    RunSystemDiagnosticsArgs,
    SetSystemThemeArgs,
    ToolArguments,
    ToolCallError,
    ToolCallRequest,
    ToolCallResponse,
    UnlockSystemArgs,
    parse_arguments,
)


CallLater = Callable[[float, Callable[[], None]], Any]


def _loop_call_later(delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay_s, callback)


class ToolDispatcher:
    """
    One dispatcher per session.

    handle() never raises.
    """

    def __init__(
        self,
        *,
        hud: HudStore,
        call_later: CallLater = _loop_call_later,
        session_id: str | None = None,
        id_memory: int = TOOL_CALL_ID_MEMORY,
    ) -> None:
        self._hud = hud
        self._call_later = call_later
        self._session_id = session_id
        self._id_memory = id_memory

        self._answered: OrderedDict[str, ToolCallResponse] = OrderedDict()
        self._diagnostic_timer: Any = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handle(self, request: ToolCallRequest) -> ToolCallResponse:
        """Apply the tool's effect and return its response."""
        replay = self._answered.get(request.id) if request.id else None
        if replay is not None and replay.name == request.name:
            log_event({
                "event_type": "tool_call_duplicate",
                "session_id": self._session_id,
                "tool_call_id": request.id,
                "tool": request.name,
                "result": replay.result,
            })
            return replay

        result = TOOL_RESULT_SUCCESS
        try:
            args = parse_arguments(request.name, request.arguments)
            self._apply(args)
        except ToolCallError as exc:
            result = TOOL_RESULT_FAILED
            log_event({
                "event_type": "tool_call_rejected",
                "session_id": self._session_id,
                "tool_call_id": request.id,
                "tool": request.name,
                "error": f"{type(exc).__name__}: {exc}",
            })
        except Exception as exc:  # pylint: disable=broad-exception-caught
            result = TOOL_RESULT_FAILED
            log_event({
                "event_type": "tool_call_failed",
                "session_id": self._session_id,
                "tool_call_id": request.id,
                "tool": request.name,
                "error": f"{type(exc).__name__}: {exc}",
            })
        else:
            log_event({
                "event_type": "tool_call_applied",
                "session_id": self._session_id,
                "tool_call_id": request.id,
                "tool": request.name,
            })

        response = ToolCallResponse(id=request.id, name=request.name, result=result)
        self._remember(response)
        return response

    def cancel_pending(self) -> None:
        """
        Cancel a running diagnostic timer and clear its flag.

        Called on session teardown.
        """
        timer = self._diagnostic_timer
        self._diagnostic_timer = None
        if timer is None:
            return
        timer.cancel()
        self._hud.apply(
            DiagnosticChanged(
                event_type=HudEventType.DIAGNOSTIC_CHANGED,
                is_running=False,
            )
        )

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def _apply(self, args: ToolArguments) -> None:
        if isinstance(args, SetSystemThemeArgs):
            self._hud.apply(
                ThemeChanged(event_type=HudEventType.THEME_CHANGED, color=args.color)
            )

        elif isinstance(args, RunSystemDiagnosticsArgs):
            self._start_diagnostic(args.mode)

        elif isinstance(args, LockSystemArgs):
            self._hud.apply(
                LockChanged(
                    event_type=HudEventType.LOCK_CHANGED,
                    is_locked=True,
                    reason=args.reason,
                )
            )

        elif isinstance(args, UnlockSystemArgs):
            # Unlock code is informational only
            self._hud.apply(
                LockChanged(event_type=HudEventType.LOCK_CHANGED, is_locked=False)
            )

    def _start_diagnostic(self, mode: str) -> None:
        previous = self._diagnostic_timer
        # Schedule the end first so a failure leaves the flag untouched
        self._diagnostic_timer = self._call_later(
            DIAGNOSTIC_DURATION_S[mode],
            self._finish_diagnostic,
        )
        if previous is not None:
            previous.cancel()

        self._hud.apply(
            DiagnosticChanged(
                event_type=HudEventType.DIAGNOSTIC_CHANGED,
                is_running=True,
                mode=mode,
            )
        )

    def _finish_diagnostic(self) -> None:
        self._diagnostic_timer = None
        self._hud.apply(
            DiagnosticChanged(
                event_type=HudEventType.DIAGNOSTIC_CHANGED,
                is_running=False,
            )
        )
        log_event({
            "event_type": "diagnostic_finished",
            "session_id": self._session_id,
        })

    def _remember(self, response: ToolCallResponse) -> None:
        if not response.id:
            return
        self._answered[response.id] = response
        self._answered.move_to_end(response.id)
        while len(self._answered) > self._id_memory:
            self._answered.popitem(last=False)
