"""Process launching and console output for a release run."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def run(
    *args: str, cwd: str | Path | None = None, check: bool = False
) -> subprocess.CompletedProcess[bytes]:
    """Start an npm or uv command and wait for it.

    stdout and stderr go straight to the terminal; a publish prompt for a
    one-time password still reaches the user.

    Args:
        *args: Command and arguments (e.g., "npm", "publish").
        cwd: Directory to run the command in. The caller's working
             directory is never changed.
        check: If True, raise on non-zero exit. Off by default so callers
               can report which package failed.

    Raises:
        OSError: The executable could not be started.
    """
    return subprocess.run(args, cwd=cwd, check=check)


def step(msg: str) -> None:
    """Print a phase heading (scan, bump, save, publish) between two rules."""
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def warn(msg: str) -> None:
    """Print a non-fatal warning to stderr."""
    print(f"Warning: {msg}", file=sys.stderr)
