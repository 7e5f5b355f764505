"""
Score strategies for the simulated model outputs.

Fallback paths and scenario results report confidences and risks inside fixed
bands (e.g. 92-98 for a fallback document scan). Instead of drawing random
numbers inline, each component takes a ScoreStrategy and asks it for a value
inside a ScoreBand, so tests can pin the value and demos can keep the jitter.
"""
import math
import random
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class ScoreBand:
    low: float
    high: float

    def clamp(self, value: float) -> float:
        return max(self.low, min(self.high, value))


class ScoreStrategy(Protocol):
    def score(self, band: ScoreBand) -> float:
        ...


class RandomScore:
    """Uniform draw inside the band."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def score(self, band: ScoreBand) -> float:
        return band.clamp(self.rng.uniform(band.low, band.high))


class MidpointScore:
    """Deterministic: always the middle of the band."""

    def score(self, band: ScoreBand) -> float:
        return (band.low + band.high) / 2.0


class FixedScore:
    """Deterministic: a fixed value, pulled into the band when outside it."""

    def __init__(self, value: float):
        self.value = value

    def score(self, band: ScoreBand) -> float:
        return band.clamp(self.value)


def clamp_percent(value: float) -> float:
    value = float(value)
    # NaN would survive min/max as 100
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(100.0, value))
