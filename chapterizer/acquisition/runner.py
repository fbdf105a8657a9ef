"""Run external command-line tools (yt-dlp, ffmpeg, ffprobe) with timeouts."""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# How often a running child is checked against its deadline and cancel token
_POLL_SECONDS = 0.25


@dataclass(frozen=True)
class ProcessResult:
    """Captured outcome of one external process invocation."""

    ok: bool
    stdout: str
    stderr: str
    exit_code: int


class ProcessRunner:
    """Spawn external tools with stdin closed and text output captured.

    No retries happen here; retry policy belongs to the callers.
    """

    def run(
        self,
        executable: str,
        args: list[str],
        timeout_ms: int | None = None,
        cancel: threading.Event | None = None,
    ) -> ProcessResult:
        """Run *executable* with *args* and wait for it to exit.

        Args:
            executable: Binary name or path.
            args: Argument vector (without the executable).
            timeout_ms: Kill the child after this many milliseconds.
                ``None`` or ``0`` waits indefinitely.
            cancel: Optional token; when set, the child is killed.

        Returns:
            A :class:`ProcessResult`. Spawn failures and timeouts are reported
            as ``ok=False`` rather than raised.
        """
        tool = Path(executable).name
        logger.debug("Running %s %s", tool, " ".join(args))
        try:
            proc = subprocess.Popen(
                [executable, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            logger.warning("Failed to spawn %s: %s", tool, exc)
            return ProcessResult(ok=False, stdout="", stderr=str(exc), exit_code=1)

        deadline = time.monotonic() + timeout_ms / 1000.0 if timeout_ms else None
        reason: str | None = None
        while True:
            wait = _POLL_SECONDS
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - time.monotonic()))
            try:
                stdout, stderr = proc.communicate(timeout=wait)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    reason = f"{tool} cancelled"
                elif deadline is not None and time.monotonic() >= deadline:
                    reason = f"{tool} timed out"
                if reason:
                    proc.kill()
                    stdout, stderr = proc.communicate()
                    break

        code = proc.returncode if proc.returncode is not None else 1
        if reason:
            logger.warning("%s after %s ms", reason, timeout_ms)
            stderr = f"{stderr}\n{reason}" if stderr else reason
            return ProcessResult(ok=False, stdout=stdout or "", stderr=stderr, exit_code=code)

        return ProcessResult(ok=code == 0, stdout=stdout or "", stderr=stderr or "", exit_code=code)
