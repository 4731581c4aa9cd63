"""Run progress state and its control API."""

from typing import Optional

from .models import Mode
from .utils import safe_divide


class RunState:
    """
    Single owner of (mode, is_paused, step).

    Every transition that invalidates a pending step timer bumps ``version``.
    ``run`` counts started runs so late background results can be matched
    to the run that requested them.
    Illegal requests are no-ops and report it through their return value.
    """

    def __init__(self, step_ceiling: int = 20):
        self.step_ceiling = step_ceiling
        self.mode = Mode.IDLE
        self.is_paused = False
        self.step = 0
        self.version = 0
        self.run = 0

    @property
    def is_active(self) -> bool:
        """True while a run is progressing."""
        return self.mode != Mode.IDLE and not self.is_paused

    @property
    def status(self) -> str:
        if self.mode == Mode.IDLE:
            return "IDLE"
        return "PAUSED" if self.is_paused else "ACTIVE"

    @property
    def progress_percent(self) -> float:
        return safe_divide(self.step, self.step_ceiling) * 100

    def is_current(self, version: int) -> bool:
        return version == self.version

    def owns(self, run: int) -> bool:
        """True while run number ``run`` has not been stopped or completed."""
        return run == self.run and self.mode != Mode.IDLE

    def start(self, task: Mode) -> bool:
        """Begin a run. Only legal from IDLE and for an active mode."""
        if self.mode != Mode.IDLE or task == Mode.IDLE:
            return False
        self.mode = task
        self.is_paused = False
        self.step = 0
        self.version += 1
        self.run += 1
        return True

    def toggle_pause(self) -> Optional[bool]:
        """Flip the pause flag. Returns the new flag, or None when idle."""
        if self.mode == Mode.IDLE:
            return None
        self.is_paused = not self.is_paused
        self.version += 1
        return self.is_paused

    def stop(self) -> bool:
        """Abort the current run and return to IDLE."""
        if self.mode == Mode.IDLE:
            return False
        self.mode = Mode.IDLE
        self.is_paused = False
        self.step = 0
        self.version += 1
        return True

    def advance(self) -> int:
        self.step += 1
        return self.step

    def complete(self) -> Mode:
        """Terminal transition once the step ceiling is reached."""
        finished = self.mode
        self.mode = Mode.IDLE
        self.is_paused = False
        self.version += 1
        return finished

    def as_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "is_paused": self.is_paused,
            "step": self.step,
            "step_ceiling": self.step_ceiling,
            "progress_percent": self.progress_percent,
            "status": self.status,
        }
