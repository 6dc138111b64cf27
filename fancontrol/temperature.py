"""Temperature smoothing and threshold selection."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from .model_config import TemperatureThreshold


class TemperatureFilter:
    """Moving average over the samples taken during a time span."""

    def __init__(self, poll_interval: int, timespan: int) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval: Invalid argument")
        if timespan <= 0:
            raise ValueError("timespan: Invalid argument")
        self.size = -(-timespan // poll_interval)
        self._samples: deque[float] = deque(maxlen=self.size)

    def filter(self, temperature: float) -> float:
        """Add a sample and return the average of the samples in the window."""
        self._samples.append(float(temperature))
        return sum(self._samples) / len(self._samples)


class ThresholdManager:
    """Selects the active temperature threshold with hysteresis."""

    def __init__(
        self, thresholds: Iterable[TemperatureThreshold], legacy: bool = False
    ) -> None:
        self.thresholds = sorted(thresholds, key=lambda t: t.up_threshold)
        self.legacy = legacy
        self._index: Optional[int] = None

    @property
    def current(self) -> Optional[TemperatureThreshold]:
        """The threshold chosen by the last selection, if any."""
        return None if self._index is None else self.thresholds[self._index]

    def auto_select(self, temperature: float) -> Optional[TemperatureThreshold]:
        """Move to the threshold matching ``temperature`` and return it."""
        thresholds = self.thresholds
        if not thresholds:
            return None
        last = len(thresholds) - 1
        i = self._index or 0
        while i > 0 and temperature <= thresholds[i].down_threshold:
            i -= 1
        if self.legacy:
            while i < last and temperature >= thresholds[i + 1].up_threshold:
                i += 1
        else:
            while i < last and temperature >= thresholds[i].up_threshold:
                i += 1
        self._index = i
        return thresholds[i]