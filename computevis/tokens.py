"""Token animation side channel."""

from typing import List

import numpy as np

from .history import BoundedHistory
from .models import Mode

# fmt: off
LLM_VOCAB = [
    "The", "model", "is", "thinking", "about", "how", "to", "process", "large",
    "amounts", "of", "data", "efficiently", "on", "a", "GPU", "cluster",
    "running", "H100", "units",
]
# fmt: on

INFERENCE_PROMPT = ["What", "is", "a", "GPU", "H100", "for?"]


def sample_batch(rng: np.random.Generator, size: int = 8) -> List[str]:
    """Draw a batch of vocabulary words with replacement."""
    indices = rng.integers(0, len(LLM_VOCAB), size=size)
    return [LLM_VOCAB[i] for i in indices]


class TokenStream:
    """Input batch and rolling output window shown next to the network view."""

    def __init__(self, output_window: int = 5, batch_size: int = 8):
        self.batch_size = batch_size
        self.input_tokens: List[str] = []
        self.output = BoundedHistory[str](output_window)

    @property
    def output_tokens(self) -> List[str]:
        return list(self.output.snapshot())

    def prepare(self, task: Mode, rng: np.random.Generator) -> None:
        """Reset the display for a freshly started run."""
        self.output.clear()
        if task == Mode.INFERENCE:
            self.input_tokens = list(INFERENCE_PROMPT)
        else:
            self.input_tokens = sample_batch(rng, self.batch_size)

    def on_step(self, mode: Mode, step: int, rng: np.random.Generator) -> None:
        # Inference emits one token per step, training consumes a new batch
        if mode == Mode.INFERENCE:
            self.output.append(LLM_VOCAB[step % len(LLM_VOCAB)])
        elif mode == Mode.TRAINING:
            self.input_tokens = sample_batch(rng, self.batch_size)

    def clear(self) -> None:
        self.input_tokens = []
        self.output.clear()

    def as_dict(self) -> dict:
        return {"input": list(self.input_tokens), "output": self.output_tokens}
