"""ComputeVis - LLM training vs inference GPU dynamics simulator."""

import logging
from typing import Callable, List, Optional

import numpy as np

from .annotation import Annotator, StaticAnnotator
from .generator import generate_metrics, idle_sample
from .history import BoundedHistory, ConsoleLog
from .models import (
    H100,
    EventKind,
    GpuSpec,
    LogEntry,
    LogLevel,
    Mode,
    Sample,
    SimulationConfig,
    SimulationEvent,
    StepOutcome,
)
from .scheduler import SamplingScheduler
from .state import RunState
from .tokens import TokenStream
from .utils import to_json

__all__ = ["ComputeVis", "Mode", "Sample", "SimulationConfig", "SimulationEvent"]

logger = logging.getLogger(__name__)

DEFAULT_TIP = "Select a task to begin monitoring the neural fabric."

_LOG_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

Listener = Callable[[SimulationEvent], None]


class ComputeVis:
    """Main API: run state, telemetry history, tokens, console and timers."""

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        annotator: Optional[Annotator] = None,
        gpu: GpuSpec = H100,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or SimulationConfig()
        self.annotator = annotator or StaticAnnotator()
        self.gpu = gpu
        self.rng = rng if rng is not None else np.random.default_rng()
        self.state = RunState(self.config.step_ceiling)
        self.history = BoundedHistory[Sample](self.config.history_size)
        self.tokens = TokenStream(
            self.config.output_token_window, self.config.training_batch_tokens
        )
        self.console = ConsoleLog(self.config.log_capacity)
        self.expert_tip = DEFAULT_TIP
        self.scheduler = SamplingScheduler(
            on_tick=self.tick_metrics,
            on_step=self._on_step_timer,
            metrics_interval=self.config.metrics_interval_s,
            step_interval=self.config.step_interval_s,
        )
        self._listeners: List[Listener] = []

    async def __aenter__(self):
        self.open()
        return self

    async def __aexit__(self, *args):
        await self.close()

    def open(self) -> None:
        """Start the timers on the running event loop."""
        self.scheduler.open()
        self.scheduler.reschedule(self.state.version, self.state.is_active)

    async def close(self) -> None:
        """Cancel all timers and pending annotation requests."""
        await self.scheduler.close()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, kind: EventKind, payload: dict) -> None:
        event = SimulationEvent(kind, to_json(payload))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s event", kind.value)

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        """Append a console line and publish it."""
        entry = self.console.add(message, level)
        logger.log(_LOG_LEVELS[level], message)
        self._emit(EventKind.LOG, {"entry": entry})
        return entry

    @property
    def latest(self) -> Sample:
        """Newest sample, or an idle reading before the first tick."""
        return self.history.latest or idle_sample(self.gpu)

    def reset_history(self) -> None:
        self.history.clear()

    def start(self, task: Mode) -> bool:
        """Begin a training or inference run. No-op unless idle."""
        task = Mode(task)
        if not self.state.start(task):
            return False
        self.tokens.prepare(task, self.rng)
        self.log(f"Initiating {task.value} sequence...")
        self._state_changed()
        if self.scheduler.running:
            self.scheduler.spawn(
                self._refresh_tip(self.state.run, task == Mode.TRAINING)
            )
        return True

    def toggle_pause(self) -> Optional[bool]:
        """Pause or resume. Returns the new pause flag, None when idle."""
        paused = self.state.toggle_pause()
        if paused is None:
            return None
        if paused:
            self.log("Simulation paused by user.", LogLevel.WARN)
        else:
            self.log("Simulation resumed.")
        self._state_changed()
        return paused

    def stop(self) -> bool:
        """Abort the run. History is kept; token displays are cleared."""
        mode = self.state.mode
        if not self.state.stop():
            return False
        self.tokens.clear()
        self.log(
            f"Task '{mode.value}' terminated by user. Returning to IDLE state.",
            LogLevel.WARN,
        )
        self._state_changed()
        return True

    def _state_changed(self) -> None:
        self._emit(EventKind.STATE, self.state.as_dict())
        self.scheduler.reschedule(self.state.version, self.state.is_active)

    def tick_metrics(self) -> Sample:
        """Sample the current state once and append it to the history."""
        state = self.state
        sample = generate_metrics(
            state.mode, state.is_paused, state.step, self.rng, self.gpu
        )
        self.history.append(sample)
        self._emit(EventKind.METRICS, {"sample": sample})
        return sample

    def fire_step(self, version: int) -> StepOutcome:
        """Advance the run by one step if the timer is still current."""
        state = self.state
        if not state.is_current(version) or not state.is_active:
            return StepOutcome.STALE

        if state.step >= state.step_ceiling:
            finished = state.complete()
            self.log(
                f"{finished.value} sequence completed successfully.", LogLevel.SUCCESS
            )
            self._emit(EventKind.COMPLETE, {"mode": finished, "step": state.step})
            self._state_changed()
            return StepOutcome.COMPLETED

        mode = state.mode
        step = state.advance()
        self.tokens.on_step(mode, step, self.rng)
        self._emit(
            EventKind.STEP,
            {
                "step": step,
                "progress_percent": state.progress_percent,
                "tokens": self.tokens.as_dict(),
            },
        )
        if self.scheduler.running:
            self.scheduler.spawn(self._annotate(state.run, mode, step))
        return StepOutcome.ADVANCED

    def _on_step_timer(self, version: int) -> bool:
        return self.fire_step(version) is StepOutcome.ADVANCED

    async def _annotate(self, run: int, mode: Mode, step: int) -> None:
        message = await self.annotator.annotate(mode, step)
        if not self.state.owns(run):
            logger.debug("Dropping annotation for finished run %d", run)
            return
        self.log(message)

    async def _refresh_tip(self, run: int, is_training: bool) -> None:
        tip = await self.annotator.compare_view(is_training)
        if not self.state.owns(run):
            logger.debug("Dropping insight for finished run %d", run)
            return
        self.expert_tip = tip
        self._emit(EventKind.TIP, {"text": self.expert_tip})
