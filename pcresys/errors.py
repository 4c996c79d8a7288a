# pcresys/errors.py
# -*- coding: utf-8 -*-
"""
errors.py - exception hierarchy for pcresys

Every fatal condition of a run is one of these; the CLI is the only place
that turns them into an exit status. A pkg-config miss is NOT an error
(see locator.ProbeResult).
"""

from __future__ import annotations

from typing import Optional, Sequence

__all__ = [
    "PcreSysError",
    "ConfigurationError",
    "ExtractionError",
    "ToolMissing",
    "ToolFailed",
]


class PcreSysError(RuntimeError):
    """Base class; `step` names the stage that failed (extract, autoreconf, ...)."""

    step = "pcresys"

    def __init__(self, message: str, *, step: Optional[str] = None) -> None:
        super().__init__(message)
        if step:
            self.step = step


class ConfigurationError(PcreSysError):
    """Raised when environment inputs or the config file are unusable."""

    step = "config"


class ExtractionError(PcreSysError):
    """An archive entry could not be materialized under the output root."""

    step = "extract"

    def __init__(self, entry_name: str, destination: Optional[str], cause: BaseException) -> None:
        self.entry_name = entry_name
        self.destination = destination
        self.cause = cause
        if destination:
            msg = f"failed to extract {entry_name} to {destination}: {cause}"
        else:
            msg = f"failed to extract {entry_name}: {cause}"
        super().__init__(msg)


class ToolMissing(PcreSysError):
    """A required executable is not on PATH."""

    def __init__(self, tool: str, hint: Optional[str] = None, cause: Optional[BaseException] = None) -> None:
        self.tool = tool
        self.hint = hint
        self.cause = cause
        msg = f"failed to execute `{tool}`"
        if cause is not None:
            msg += f": {cause}"
        if hint:
            msg += f". {hint}"
        super().__init__(msg, step=tool)


class ToolFailed(PcreSysError):
    """A tool ran but exited non-zero (or could not be spawned for another reason)."""

    def __init__(self, command: Sequence[str], returncode: Optional[int] = None, detail: Optional[str] = None) -> None:
        self.command = list(command)
        self.returncode = returncode
        cmdline = " ".join(self.command)
        if detail:
            msg = f"failed to execute `{cmdline}`: {detail}"
        else:
            msg = f"`{cmdline}` did not run successfully (exit status {returncode})."
        super().__init__(msg, step=self.command[0] if self.command else None)
