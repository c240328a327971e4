"""Typed errors with stable, machine-readable codes."""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Sequence


class ErrorCode(str, Enum):
    VALIDATION = "E_VALIDATION"
    COMMAND = "E_COMMAND"
    DOCKER = "E_DOCKER"


class ToolboxError(Exception):
    """Base error carrying a code, an optional hint and context."""

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for k, v in self.context.items():
            if v:
                parts.append(f"  {k}: {v}")
        return "\n".join(parts)


class ValidationError(ToolboxError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class CommandError(ToolboxError):
    """An external tool exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        argv: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
        hint: str | None = None,
    ) -> None:
        context = {
            "command": " ".join(argv),
            "returncode": "" if returncode is None else str(returncode),
            "stderr": stderr.strip()[:2000],
        }
        super().__init__(message, code=ErrorCode.COMMAND, hint=hint, context=context)
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr


class DockerError(ToolboxError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.DOCKER, hint=hint, context=context)


__all__ = [
    "CommandError",
    "DockerError",
    "ErrorCode",
    "ToolboxError",
    "ValidationError",
]
