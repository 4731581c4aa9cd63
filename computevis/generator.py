"""Synthetic GPU telemetry generation."""

import time
from typing import Optional

import numpy as np

from .models import (
    H100,
    INFERENCE_PROFILE,
    TRAINING_PROFILE,
    GpuSpec,
    Mode,
    Sample,
    WorkloadProfile,
)

LOSS_SCALE = 2.5
LOSS_DECAY = 0.1
LOSS_FLOOR = 0.1
LOSS_NOISE = 0.05
TPS_RANGE = (18.0, 24.0)

_default_rng = np.random.default_rng()


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return min(high, max(low, value))


def training_loss(step: int, rng: np.random.Generator) -> float:
    """Asymptotically decaying loss curve with a hard floor."""
    decayed = LOSS_SCALE / (1 + step * LOSS_DECAY)
    return max(LOSS_FLOOR, decayed + rng.uniform(0.0, LOSS_NOISE))


def _targets(
    profile: WorkloadProfile, is_paused: bool, rng: np.random.Generator
) -> tuple[float, float]:
    vram = profile.vram_peak_gb + rng.uniform(
        -profile.vram_jitter_gb, profile.vram_jitter_gb
    )
    if is_paused:
        compute = profile.paused_compute_floor + rng.random()
    else:
        compute = profile.compute_peak + rng.uniform(
            -profile.compute_jitter, profile.compute_jitter
        )
    return vram, compute


def build_sample(
    vram_gb: float,
    compute: float,
    gpu: GpuSpec = H100,
    loss: Optional[float] = None,
    tokens_per_second: Optional[float] = None,
    captured_at: Optional[float] = None,
) -> Sample:
    """Clamp raw targets and derive throughput and thermals from utilization."""
    vram_gb = clamp(float(vram_gb), 0.0, gpu.vram_total_gb)
    compute = clamp(float(compute), 0.0, 100.0)
    thermal_span = gpu.peak_temperature_c - gpu.idle_temperature_c
    return Sample(
        captured_at=time.time() if captured_at is None else captured_at,
        vram_used_gb=vram_gb,
        vram_total_gb=gpu.vram_total_gb,
        compute_util_percent=compute,
        teraflops=(compute / 100) * gpu.peak_tflops,
        temperature_c=gpu.idle_temperature_c + (compute / 100) * thermal_span,
        loss=loss,
        tokens_per_second=tokens_per_second,
    )


def generate_metrics(
    mode: Mode,
    is_paused: bool,
    step: int,
    rng: Optional[np.random.Generator] = None,
    gpu: GpuSpec = H100,
    captured_at: Optional[float] = None,
) -> Sample:
    """
    Generate one telemetry sample for the given run progress.

    Args:
        mode: Workload regime
        is_paused: Whether the run is paused
        step: Current step of the run, only used by the training loss curve
        rng: Randomness source, defaults to a module-level generator
        gpu: Simulated device
        captured_at: Timestamp override, defaults to now

    Returns:
        Sample with VRAM and utilization clamped to the device limits
    """
    rng = rng if rng is not None else _default_rng

    if mode == Mode.TRAINING:
        vram, compute = _targets(TRAINING_PROFILE, is_paused, rng)
        # Loss depends on step only; pausing freezes it by freezing step
        loss = training_loss(step, rng)
        return build_sample(vram, compute, gpu, loss=loss, captured_at=captured_at)

    if mode == Mode.INFERENCE:
        vram, compute = _targets(INFERENCE_PROFILE, is_paused, rng)
        tps = 0.0 if is_paused else rng.uniform(*TPS_RANGE)
        return build_sample(
            vram, compute, gpu, tokens_per_second=float(tps), captured_at=captured_at
        )

    return idle_sample(gpu, captured_at)


def idle_sample(gpu: GpuSpec = H100, captured_at: Optional[float] = None) -> Sample:
    """Deterministic idle reading."""
    return build_sample(gpu.idle_vram_gb, 0.0, gpu, captured_at=captured_at)
