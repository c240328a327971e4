from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class SoftFailure:
    """A failed command the build tolerates; reported as a warning."""

    step_id: str | None
    command: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} ({self.command})"


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command (never the stdin payload, which may carry passwords).
    - dry_run logs but does not execute.
    - check=True raises CommandError on a non-zero exit.
    """

    argv_list = list(argv)
    logger.info("CMD %s", _fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except FileNotFoundError as e:
        raise CommandError(
            f"Command not found: {argv_list[0]}",
            argv=argv_list,
            hint="Install the tool or run the build inside the lxc-builder container.",
        ) from e

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise CommandError(
            f"Command failed ({p.returncode}): {_fmt_argv(argv_list)}",
            argv=argv_list,
            returncode=p.returncode,
            stderr=p.stderr,
        )

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def soft_cmd(
    argv: Sequence[str],
    *,
    message: str,
    step_id: str | None = None,
    dry_run: bool = False,
) -> SoftFailure | None:
    """Run a command whose failure is tolerated.

    Returns a SoftFailure describing the failure, or None on success.
    """

    try:
        r = run_cmd(argv, check=False, dry_run=dry_run)
    except CommandError as e:
        logger.warning("%s: %s", message, e)
        return SoftFailure(step_id=step_id, command=_fmt_argv(argv), message=message)

    if r.returncode == 0:
        return None
    logger.warning("%s (exit %s)", message, r.returncode)
    return SoftFailure(step_id=step_id, command=_fmt_argv(argv), message=message)
