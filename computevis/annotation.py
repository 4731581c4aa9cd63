"""Flavor-text annotations with static fallbacks."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

from .models import Mode

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRO_MODEL = "gemini-3-pro-preview"
FLASH_MODEL = "gemini-3-flash-preview"

EMPTY_ANNOTATION = "Synchronizing neural weights..."
EMPTY_INSIGHT = "No insights available."

TRAINING_FALLBACKS = [
    "Optimizer state updated: Weight gradients normalized across 8 nodes.",
    "Backpropagation successful: Applied AdamW update to hidden layers.",
    "Loss convergence detected: Stochastic noise within expected bounds.",
    "Checkpoint saved: Model weights synchronized to sharded storage.",
    "Learning rate adjusted: Scheduler reducing alpha for fine-tuning.",
    "Gradient clipping applied to prevent exploding tensors.",
    "Loss: 1.842 - Batch processing latency at 42ms.",
    "Attention heads updated: Cross-layer normalization stable.",
]

INFERENCE_FALLBACKS = [
    "KV Cache miss: Repopulating context for new sequence length.",
    "Token generated: Sampling temperature adjusted via top-p nucleus.",
    "Attention mask applied: Masking future tokens for causal decoding.",
    "Logit bias updated: Enhancing factual consistency in output.",
    "Softmax normalization complete: Probability distribution stable.",
    "Context window shifted: Sliding window attention active.",
    "Beam search step: Evaluated top-5 candidate hypotheses.",
    "Flash Attention v2 executed: 4x speedup on attention block.",
]

TRAINING_COMPARISON = (
    "• Training requires massive VRAM for Gradients and Optimizer States.\n"
    "• Weights + Gradients + Moments can triple the memory footprint compared "
    "to pure weights.\n"
    "• High compute utilization (90%+) is typical during backward passes."
)

INFERENCE_COMPARISON = (
    "• Inference memory is dominated by Model Weights and the KV Cache.\n"
    "• Memory usage scales with context length due to stored key-value pairs.\n"
    "• Compute is typically bursty and lower intensity than training cycles."
)


class RateLimitedError(Exception):
    """The text-generation backend asked us to slow down (HTTP 429)."""


async def retry(
    fn: Callable[[], Awaitable[T]], retries: int = 2, delay: float = 1.0
) -> T:
    """Call fn, retrying on rate limiting with a doubling delay."""
    try:
        return await fn()
    except RateLimitedError:
        if retries <= 0:
            raise
        logger.debug("Rate limited, retrying in %.1fs", delay)
        await asyncio.sleep(delay)
        return await retry(fn, retries - 1, delay * 2)


def fallback_annotation(mode: Mode, step: int) -> str:
    corpus = TRAINING_FALLBACKS if mode == Mode.TRAINING else INFERENCE_FALLBACKS
    return corpus[step % len(corpus)]


def fallback_comparison(is_training: bool) -> str:
    return TRAINING_COMPARISON if is_training else INFERENCE_COMPARISON


def annotation_prompt(mode: Mode, step: int) -> str:
    if mode == Mode.TRAINING:
        return (
            "You are an AI Training System Monitor. Generate a one-sentence "
            f"technical log for step {step} of training a 70B parameter LLM. "
            "Mention things like gradients, backpropagation, optimizer states "
            "(AdamW), or loss convergence. Return ONLY the log message."
        )
    return (
        "You are an AI Inference Engine. Generate a one-sentence technical log "
        f"for generating token #{step}. Mention KV cache, attention mechanism, "
        "or sampling temperature. Return ONLY the log message."
    )


def comparison_prompt(is_training: bool) -> str:
    phase = "Training" if is_training else "Inference"
    if is_training:
        focus = "Optimizer states and Gradients"
    else:
        focus = "KV Cache and weights"
    return (
        "Explain the primary difference in GPU memory usage between LLM "
        f"{phase}. Focus on {focus}. Keep it to 3 short bullet points."
    )


class Annotator(ABC):
    """
    Base class for flavor-text providers.

    Subclasses implement ``generate``. The public calls never raise: any
    failure is logged and replaced by static text.
    """

    training_model = PRO_MODEL
    inference_model = FLASH_MODEL
    comparison_model = FLASH_MODEL
    retries = 2
    backoff = 1.0

    @abstractmethod
    async def generate(self, prompt: str, model: str) -> str:
        """Return generated text for prompt."""

    async def _generate_with_retry(self, prompt: str, model: str) -> str:
        return await retry(
            lambda: self.generate(prompt, model), self.retries, self.backoff
        )

    async def annotate(self, mode: Mode, step: int) -> str:
        """One-sentence log line for a step of the run."""
        model = self.training_model if mode == Mode.TRAINING else self.inference_model
        try:
            prompt = annotation_prompt(mode, step)
            text = await self._generate_with_retry(prompt, model)
        except Exception as exc:
            logger.warning("Annotation request failed, using fallback: %s", exc)
            return fallback_annotation(mode, step)
        return text.strip() or EMPTY_ANNOTATION

    async def compare_view(self, is_training: bool) -> str:
        """Short bullet list contrasting training and inference memory use."""
        try:
            text = await self._generate_with_retry(
                comparison_prompt(is_training), self.comparison_model
            )
        except Exception as exc:
            logger.warning("Comparison request failed, using fallback: %s", exc)
            return fallback_comparison(is_training)
        return text.strip() or EMPTY_INSIGHT

    async def aclose(self) -> None:
        """Release any held resources."""


class StaticAnnotator(Annotator):
    """Annotator used when no text-generation backend is configured."""

    async def generate(self, prompt: str, model: str) -> str:
        raise RuntimeError("No text-generation backend configured")

    async def annotate(self, mode: Mode, step: int) -> str:
        return fallback_annotation(mode, step)

    async def compare_view(self, is_training: bool) -> str:
        return fallback_comparison(is_training)
