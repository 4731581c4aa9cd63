"""Data models for the ComputeVis API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from computevis.models import LogLevel, Mode


class MetricsSample(BaseModel):
    """One telemetry reading as sent to the dashboard."""

    model_config = ConfigDict(from_attributes=True)

    captured_at: float
    vram_used_gb: float = Field(ge=0.0)
    vram_total_gb: float
    compute_util_percent: float = Field(ge=0.0, le=100.0)
    teraflops: float
    temperature_c: float
    loss: Optional[float] = None
    tokens_per_second: Optional[float] = None


class LogEntryModel(BaseModel):
    """Console line."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    timestamp: str
    level: LogLevel
    message: str


class RunStatus(BaseModel):
    """Current run progress."""

    mode: Mode
    is_paused: bool
    step: int = Field(ge=0)
    step_ceiling: int
    progress_percent: float
    status: str


class TokenDisplay(BaseModel):
    """Token animation state."""

    input: list[str] = Field(default_factory=list)
    output: list[str] = Field(default_factory=list)


class MetricsResponse(BaseModel):
    """Latest reading plus the rolling history."""

    latest: MetricsSample
    history: list[MetricsSample]
    series: dict[str, list[float]] = Field(default_factory=dict)


class DashboardSnapshot(BaseModel):
    """Everything the dashboard needs to render from scratch."""

    run: RunStatus
    latest: MetricsSample
    history: list[MetricsSample]
    tokens: TokenDisplay
    logs: list[LogEntryModel]
    expert_tip: str


class StartRequest(BaseModel):
    """Request to begin a simulated run."""

    task: Mode


class ControlResponse(BaseModel):
    """Result of a control action. ``applied`` is False for illegal requests."""

    applied: bool
    run: RunStatus


class WorkloadInfo(BaseModel):
    vram_peak_gb: float
    compute_peak: float


class GpuInfo(BaseModel):
    """Simulated device description."""

    name: str
    vram_total_gb: float
    peak_tflops: float
    idle_vram_gb: float
    training: WorkloadInfo
    inference: WorkloadInfo


class AnnotatorInfo(BaseModel):
    """Which text-generation backend is in use."""

    backend: str
    key_available: bool = False
    key_source: Optional[str] = None
    masked_key: Optional[str] = None
