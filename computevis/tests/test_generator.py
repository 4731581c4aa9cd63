"""Tests for synthetic telemetry generation.

Uses seeded generators so every bound can be checked deterministically.
"""

import numpy as np
import pytest

from computevis.generator import generate_metrics, idle_sample, training_loss
from computevis.models import GpuSpec, Mode


ALL_INPUTS = [
    (mode, paused, step)
    for mode in Mode
    for paused in (False, True)
    for step in (0, 1, 5, 20, 500)
]


class TestInvariantBounds:
    """Bounds and derived values hold for every mode and input."""

    @pytest.mark.parametrize("mode,paused,step", ALL_INPUTS)
    def test_vram_and_compute_within_device_limits(self, rng, mode, paused, step):
        for _ in range(50):
            sample = generate_metrics(mode, paused, step, rng)
            assert 0 <= sample.vram_used_gb <= sample.vram_total_gb
            assert 0 <= sample.compute_util_percent <= 100

    @pytest.mark.parametrize("mode,paused,step", ALL_INPUTS)
    def test_derived_values_are_exact(self, rng, mode, paused, step):
        sample = generate_metrics(mode, paused, step, rng)
        util = sample.compute_util_percent
        assert sample.teraflops == util / 100 * 1000
        assert sample.temperature_c == 45 + util / 100 * 35

    def test_vram_clamped_to_smaller_device(self, rng):
        small = GpuSpec(vram_total_gb=10.0)
        sample = generate_metrics(Mode.TRAINING, False, 0, rng, gpu=small)
        assert sample.vram_used_gb == 10.0
        assert sample.vram_total_gb == 10.0

    def test_vram_total_is_reference_device(self, rng):
        assert generate_metrics(Mode.INFERENCE, False, 0, rng).vram_total_gb == 80.0


class TestIdle:
    def test_idle_has_no_mode_metrics(self, rng):
        sample = generate_metrics(Mode.IDLE, False, 0, rng)
        assert sample.loss is None
        assert sample.tokens_per_second is None

    def test_idle_baseline_footprint(self, rng):
        sample = generate_metrics(Mode.IDLE, True, 7, rng)
        assert sample.vram_used_gb == 4.0
        assert sample.compute_util_percent == 0.0
        assert sample.teraflops == 0.0
        assert sample.temperature_c == 45.0

    def test_idle_sample_matches_generated_idle(self, rng):
        generated = generate_metrics(Mode.IDLE, False, 0, rng, captured_at=1.0)
        assert idle_sample(captured_at=1.0) == generated


class TestTraining:
    def test_only_loss_is_populated(self, rng):
        sample = generate_metrics(Mode.TRAINING, False, 3, rng)
        assert sample.loss is not None
        assert sample.tokens_per_second is None

    def test_active_scenario_bounds(self, rng):
        for _ in range(100):
            sample = generate_metrics(Mode.TRAINING, False, 0, rng)
            assert 0.1 <= sample.loss <= 2.55
            assert 92.5 <= sample.compute_util_percent <= 97.5
            assert 71.0 <= sample.vram_used_gb <= 73.0

    def test_paused_compute_drops_to_low_band(self, rng):
        for _ in range(100):
            sample = generate_metrics(Mode.TRAINING, True, 4, rng)
            assert 5.0 <= sample.compute_util_percent < 6.0

    @pytest.mark.parametrize("step", [0, 1, 10, 100, 10_000, 10**9])
    def test_loss_never_below_floor(self, rng, step):
        for _ in range(20):
            assert generate_metrics(Mode.TRAINING, False, step, rng).loss >= 0.1

    def test_loss_floor_reached_for_huge_step(self, rng):
        assert training_loss(10**9, rng) == pytest.approx(0.1)

    def test_loss_trends_downward(self, rng):
        def mean_loss(step):
            return np.mean(
                [generate_metrics(Mode.TRAINING, False, step, rng).loss for _ in range(200)]
            )

        losses = [mean_loss(step) for step in (0, 5, 10, 20)]
        assert losses == sorted(losses, reverse=True)

    def test_loss_ignores_pause(self):
        """Pause only changes compute; the loss draw is identical."""
        active = generate_metrics(Mode.TRAINING, False, 6, np.random.default_rng(7))
        paused = generate_metrics(Mode.TRAINING, True, 6, np.random.default_rng(7))
        assert active.loss == paused.loss
        assert active.compute_util_percent != paused.compute_util_percent


class TestInference:
    def test_only_tps_is_populated(self, rng):
        sample = generate_metrics(Mode.INFERENCE, False, 3, rng)
        assert sample.loss is None
        assert sample.tokens_per_second is not None

    def test_paused_scenario(self, rng):
        for _ in range(100):
            sample = generate_metrics(Mode.INFERENCE, True, 5, rng)
            assert sample.tokens_per_second == 0
            assert 2.0 <= sample.compute_util_percent < 3.0

    def test_active_tps_range(self, rng):
        for _ in range(200):
            sample = generate_metrics(Mode.INFERENCE, False, 5, rng)
            assert 18.0 <= sample.tokens_per_second < 24.0
            assert 40.0 <= sample.compute_util_percent <= 50.0
            assert 17.5 <= sample.vram_used_gb <= 18.5


class TestSampling:
    def test_seeded_generators_reproduce(self):
        a = generate_metrics(Mode.TRAINING, False, 2, np.random.default_rng(3), captured_at=0)
        b = generate_metrics(Mode.TRAINING, False, 2, np.random.default_rng(3), captured_at=0)
        assert a == b

    def test_samples_are_immutable(self, rng):
        sample = generate_metrics(Mode.IDLE, False, 0, rng)
        with pytest.raises(AttributeError):
            sample.vram_used_gb = 1.0

    def test_works_without_explicit_rng(self):
        sample = generate_metrics(Mode.INFERENCE, False, 0)
        assert 18.0 <= sample.tokens_per_second < 24.0
