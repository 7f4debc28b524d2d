"""
Child-process runner for the external still-capture programs.

The runner never blocks the scheduler waiting for a child to exit: it polls
the child from a periodic timer and emits ``finished(exit_code, status)``
once the child is gone.
"""

import subprocess
import tempfile
from enum import Enum
from typing import Callable, List, Optional

from ..scheduler import Scheduler, Timer
from ..signals import Signal

POLL_INTERVAL = 0.05  # seconds


class ExitStatus(str, Enum):
    NORMAL = "normal"
    CRASHED = "crashed"  # killed by a signal


class CaptureProcess:
    """
    One child process at a time, supervised from the scheduler.

    Emits ``finished(exit_code, ExitStatus)`` exactly once per successful
    ``start``, including when the child is killed.
    """

    def __init__(self, scheduler: Scheduler, logger, popen: Callable[..., subprocess.Popen] = subprocess.Popen):
        self.logger = logger
        self._popen = popen
        self._proc: Optional[subprocess.Popen] = None
        self._stderr = None
        self._poll_timer = Timer(scheduler, POLL_INTERVAL, self._poll)
        self.finished = Signal("finished")

    @property
    def is_running(self) -> bool:
        return self._proc is not None

    def start(self, program: str, arguments: List[str]) -> bool:
        """
        Start ``program`` with ``arguments``.

        Starting is synchronous: ``Popen`` returns once the program has been
        executed, and raises straight away if it cannot be. There is no start
        timeout to wait out.

        Returns:
            bool: True if the child is running, False if it could not be started.
        """
        if self._proc is not None:
            self.logger.warning(f"Capture process already running, not starting {program}")
            return False

        command = [program, *arguments]
        self.logger.info("Executing command: %s", ' '.join(command))
        stderr = tempfile.TemporaryFile()
        try:
            self._proc = self._popen(command, stdout=subprocess.DEVNULL, stderr=stderr)
        except OSError as e:
            stderr.close()
            self.logger.error(f"Failed to start {program}: {e}")
            return False

        self._stderr = stderr
        self._poll_timer.start()
        return True

    def kill(self) -> None:
        if self._proc is not None:
            self.logger.info(f"Killing capture process {self._proc.pid}")
            try:
                self._proc.kill()
            except OSError as e:
                self.logger.warning(f"Failed to kill capture process: {e}")

    def wait(self, timeout: float) -> bool:
        """
        Block until the child exits, up to ``timeout`` seconds.

        Only used during shutdown. Emits ``finished`` if the child exited.
        """
        if self._proc is None:
            return True
        try:
            self._proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.logger.error(f"Capture process did not exit within {timeout:.1f}s")
            return False
        self._poll()
        return True

    def _poll(self) -> None:
        if self._proc is None:
            self._poll_timer.stop()
            return
        exit_code = self._proc.poll()
        if exit_code is None:
            return

        self._poll_timer.stop()
        self._proc = None
        status = ExitStatus.CRASHED if exit_code < 0 else ExitStatus.NORMAL
        if exit_code != 0:
            self.logger.error(f"Error capturing image (exit code: {exit_code}): {self._read_stderr()}")
        self._close_stderr()
        self.finished.emit(exit_code, status)

    def _read_stderr(self) -> str:
        if self._stderr is None:
            return ""
        try:
            self._stderr.seek(0)
            return self._stderr.read().decode(errors="replace").strip()
        except OSError:
            return ""

    def _close_stderr(self) -> None:
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None
