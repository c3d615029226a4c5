"""
Branch Resolution

Resolves the current version-control branch for heartbeats. Any failure
to find or run the VCS tool downgrades to the default branch and turns
version-control integration off for the rest of the session.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Protocol

import structlog

from pulsetrack.heartbeat.context import PulseContext

logger = structlog.get_logger(__name__)

BRANCH_ARGS = ("rev-parse", "--abbrev-ref", "HEAD")


class BranchResolver(Protocol):
    """Anything that can name the current branch."""

    def resolve(self) -> str: ...


@dataclass
class CommandOutput:
    """Captured output of one VCS invocation."""

    stdout: str = ""
    stderr: str = ""


def search_path_separator(platform: str) -> str:
    """Separator used by the PATH variable on ``platform``."""
    return ";" if platform.lower().startswith("win") else ":"


def executable_name(name: str, platform: str) -> str:
    if platform.lower().startswith("win") and not name.lower().endswith(".exe"):
        return f"{name}.exe"
    return name


class GitCommand:
    """Locates and runs the git executable."""

    def __init__(
        self,
        executable: str = "git",
        platform: str = "linux",
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.executable = executable
        self.platform = platform
        self.cwd = cwd
        self.timeout = timeout

    def locate(self) -> str | None:
        """Full path of the executable on the search path, or None."""
        path = os.environ.get("PATH", "")
        directories = path.split(search_path_separator(self.platform))
        return shutil.which(
            executable_name(self.executable, self.platform),
            path=os.pathsep.join(directories),
        )

    def run(self, executable: str, args: tuple[str, ...] = BRANCH_ARGS) -> CommandOutput:
        """Run ``executable`` with ``args`` and capture its output."""
        try:
            completed = subprocess.run(
                [executable, *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                # Branch names are bytes to git; undecodable ones must not raise
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return CommandOutput(stderr=f"{executable} timed out after {self.timeout}s")
        except OSError as e:
            return CommandOutput(stderr=str(e))
        return CommandOutput(stdout=completed.stdout or "", stderr=completed.stderr or "")


class VersionControlResolver:
    """
    Branch resolver backed by a VCS command.

    States:
        disabled -> always the default branch, no subprocess
        tool missing -> disable for the session, default branch
        invocation error -> disable for the session, default branch
        success -> parsed branch, stays enabled
    """

    def __init__(
        self,
        context: PulseContext,
        command: GitCommand | None = None,
        default_branch: str = "master",
    ) -> None:
        self.context = context
        self.command = command or GitCommand()
        self.default_branch = default_branch

    def resolve(self) -> str:
        if not self.context.vcs_enabled:
            return self.default_branch

        executable = self.command.locate()
        if executable is None:
            logger.warning(
                "Version control tool not found on search path, disabling version control",
                tool=self.command.executable,
            )
            self.context.disable_vcs_for_session()
            return self.default_branch

        output = self.command.run(executable)
        if output.stderr.strip():
            logger.warning(
                "Version control branch lookup failed, disabling version control",
                tool=executable,
                error=output.stderr.strip(),
            )
            self.context.disable_vcs_for_session()
            return self.default_branch

        branch = output.stdout.strip()
        if not branch:
            return self.default_branch
        return branch
