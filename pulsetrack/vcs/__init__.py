"""Version-control branch lookup."""

from pulsetrack.vcs.branch import (
    BranchResolver,
    CommandOutput,
    GitCommand,
    VersionControlResolver,
)

__all__ = [
    "BranchResolver",
    "CommandOutput",
    "GitCommand",
    "VersionControlResolver",
]
