"""Weighted two-phase progress model.

Processing runs in two sequential phases: frame extraction (one ffmpeg run that
reports a ``frame=`` counter) and per-frame conversion. Each phase owns a share
of the task's ``total`` frame units; the shares sum to ``total``.
"""
import math

DEFAULT_EXTRACT_WEIGHT = 0.4
DEFAULT_CONVERT_WEIGHT = 0.6


class WeightedProgress:
    def __init__(
        self,
        extract_weight: float = DEFAULT_EXTRACT_WEIGHT,
        convert_weight: float | None = None,
    ):
        if convert_weight is None:
            convert_weight = 1.0 - extract_weight
        if extract_weight < 0 or convert_weight < 0:
            raise ValueError("Progress weights must be non-negative")
        if not math.isclose(extract_weight + convert_weight, 1.0):
            raise ValueError(f"Progress weights must sum to 1, got {extract_weight} + {convert_weight}")
        self.extract_weight = extract_weight
        self.convert_weight = convert_weight

    def extraction(self, current: int, total: int) -> int:
        """Units reached after ffmpeg reported ``current`` of ``total`` frames extracted."""
        current = max(0, min(current, total))
        return math.floor(current * self.extract_weight)

    def extraction_done(self, total: int) -> int:
        return math.floor(total * self.extract_weight)

    def conversion(self, done: int, count: int, total: int) -> int:
        """Units reached after converting ``done`` of ``count`` extracted frames."""
        if count <= 0 or done >= count:
            return total
        done = max(0, done)
        return self.extraction_done(total) + math.floor((done / count) * (total * self.convert_weight))


def to_percent(units: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(100, units * 100 // total))
