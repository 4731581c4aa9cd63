"""Data models for ComputeVis."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Mode(str, Enum):
    """Workload regime being simulated."""

    IDLE = "IDLE"
    TRAINING = "TRAINING"
    INFERENCE = "INFERENCE"


class LogLevel(str, Enum):
    """Severity of a console entry."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


class EventKind(str, Enum):
    """Kinds of events published to dashboard consumers."""

    METRICS = "metrics"
    STEP = "step"
    STATE = "state"
    LOG = "log"
    TIP = "tip"
    COMPLETE = "complete"


class StepOutcome(str, Enum):
    """Result of one step-progression fire."""

    STALE = "stale"
    ADVANCED = "advanced"
    COMPLETED = "completed"


@dataclass(frozen=True)
class GpuSpec:
    """Simulated device constants."""

    name: str = "NVIDIA H100 Tensor Core GPU"
    vram_total_gb: float = 80.0
    peak_tflops: float = 1000.0
    idle_vram_gb: float = 4.0
    idle_temperature_c: float = 45.0
    peak_temperature_c: float = 80.0


@dataclass(frozen=True)
class WorkloadProfile:
    """Peak values and jitter for one active mode."""

    vram_peak_gb: float
    vram_jitter_gb: float
    compute_peak: float
    compute_jitter: float
    paused_compute_floor: float


H100 = GpuSpec()

# Weights + gradients + optimizer states
TRAINING_PROFILE = WorkloadProfile(
    vram_peak_gb=72.0,
    vram_jitter_gb=1.0,
    compute_peak=95.0,
    compute_jitter=2.5,
    paused_compute_floor=5.0,
)

# Weights + KV cache
INFERENCE_PROFILE = WorkloadProfile(
    vram_peak_gb=18.0,
    vram_jitter_gb=0.5,
    compute_peak=45.0,
    compute_jitter=5.0,
    paused_compute_floor=2.0,
)


@dataclass(frozen=True)
class Sample:
    """One synthetic telemetry reading."""

    captured_at: float
    vram_used_gb: float
    vram_total_gb: float
    compute_util_percent: float
    teraflops: float
    temperature_c: float
    loss: Optional[float] = None
    tokens_per_second: Optional[float] = None


@dataclass
class SimulationConfig:
    """Timing and buffer sizes for a simulation session."""

    metrics_interval_s: float = 1.0
    step_interval_s: float = 1.5
    history_size: int = 30
    step_ceiling: int = 20
    output_token_window: int = 5
    training_batch_tokens: int = 8
    log_capacity: int = 50


@dataclass(frozen=True)
class LogEntry:
    """Single console line."""

    id: str
    timestamp: str
    level: LogLevel
    message: str


@dataclass(frozen=True)
class SimulationEvent:
    """Event published to subscribers."""

    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind.value, "data": self.payload}
