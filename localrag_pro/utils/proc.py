from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class ProcessFailed(RuntimeError):
    """The process could not be run to completion (missing binary, bad argv, timeout)."""


@dataclass
class ProcResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_process(
    args: Sequence[str],
    input_text: Optional[str] = None,
    timeout: float = 60.0,
    cwd: Optional[str] = None,
) -> ProcResult:
    """
    Spawn a short-lived process, feed it `input_text` on stdin and collect its output.

    stdin is written in full and closed before the output is awaited, so large
    request payloads cannot deadlock on a full pipe buffer.
    """
    argv = [str(a) for a in args]
    if not argv:
        raise ValueError("empty command")

    kwargs = {}
    if input_text is None:
        kwargs["stdin"] = subprocess.DEVNULL
    else:
        kwargs["input"] = input_text

    logger.debug("run_process: %s (timeout=%ss)", argv[0], timeout)
    try:
        cp = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            cwd=cwd,
            **kwargs,
        )
    except FileNotFoundError as e:
        raise ProcessFailed(f"executable not found: {argv[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise ProcessFailed(f"{argv[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise ProcessFailed(f"{argv[0]} could not be started: {e}") from e
    except ValueError as e:
        # e.g. an argument with an embedded NUL byte
        raise ProcessFailed(f"{argv[0]} rejected its arguments: {e}") from e

    return ProcResult(returncode=cp.returncode, stdout=cp.stdout or "", stderr=cp.stderr or "")
