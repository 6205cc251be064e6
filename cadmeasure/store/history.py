"""Bounded snapshot history backing undo/redo.

Each entry is a full deep copy of the measurement and group maps. The cursor
``index`` always points at the entry equal to the live state, so it stays in
``[-1, len - 1]`` across recording, truncation and eviction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Mapping

from cadmeasure.exceptions import HistoryBoundsError
from cadmeasure.geometry.contract import DEFAULT_MAX_HISTORY
from cadmeasure.schema import Measurement, MeasurementGroup

BASELINE_ACTION = "Initial state"


@dataclass(frozen=True)
class HistorySnapshot:
    measurements: dict[str, Measurement]
    groups: dict[str, MeasurementGroup]
    timestamp: datetime
    action: str

    @classmethod
    def capture(
        cls,
        measurements: Mapping[str, Measurement],
        groups: Mapping[str, MeasurementGroup],
        action: str,
    ) -> "HistorySnapshot":
        return cls(
            measurements={k: m.model_copy(deep=True) for k, m in measurements.items()},
            groups={k: g.model_copy(deep=True) for k, g in groups.items()},
            timestamp=datetime.now(timezone.utc),
            action=action,
        )

    def restore(self) -> tuple[dict[str, Measurement], dict[str, MeasurementGroup]]:
        """Fresh copies of the captured maps, safe to hand to live state."""
        return (
            {k: m.model_copy(deep=True) for k, m in self.measurements.items()},
            {k: g.model_copy(deep=True) for k, g in self.groups.items()},
        )


class History:
    def __init__(self, max_size: int = DEFAULT_MAX_HISTORY) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._entries: List[HistorySnapshot] = []
        self._index = -1

    @property
    def max_size(self) -> int:
        return self._max_size

    def set_max_size(self, max_size: int) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._evict()

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[HistorySnapshot]:
        return list(self._entries)

    def at(self, index: int) -> HistorySnapshot:
        if not 0 <= index < len(self._entries):
            raise HistoryBoundsError(
                f"History index {index} out of range",
                {"index": str(index), "size": str(len(self._entries))},
            )
        return self._entries[index]

    def push(self, snapshot: HistorySnapshot) -> None:
        """Drop any redo tail, append ``snapshot`` and make it current."""
        del self._entries[self._index + 1:]
        self._entries.append(snapshot)
        self._evict()
        self._index = len(self._entries) - 1

    def _evict(self) -> None:
        overflow = len(self._entries) - self._max_size
        if overflow > 0:
            del self._entries[:overflow]
            self._index = max(self._index - overflow, 0)
        if not self._entries:
            self._index = -1

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def step_back(self) -> HistorySnapshot | None:
        if not self.can_undo:
            return None
        self._index -= 1
        return self._entries[self._index]

    def step_forward(self) -> HistorySnapshot | None:
        if not self.can_redo:
            return None
        self._index += 1
        return self._entries[self._index]

    def clear(self) -> None:
        self._entries = []
        self._index = -1


__all__ = ["BASELINE_ACTION", "History", "HistorySnapshot"]
