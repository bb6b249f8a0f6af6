"""
Batch planning for classifier requests.

Small directories go out as one request. Larger ones are sorted by name and
sliced into fixed-size batches that are handed out one at a time, so each
batch can carry the group names accepted so far.
"""

import math
from typing import Iterable

from ..config import PipelineSettings
from ..models import Batch, Entry


class BatchPlanner:
    """
    Hands out batches in order and shrinks the batch size after repeated
    failures.
    """

    def __init__(self, entries: Iterable[Entry], settings: PipelineSettings | None = None):
        self.settings = settings or PipelineSettings()
        self.entries = list(entries)
        self.single_batch = len(self.entries) <= self.settings.single_batch_threshold
        if not self.single_batch:
            self.entries.sort(key=lambda e: e.name)

        self.batch_size = max(1, self.settings.batch_size)
        self._position = 0
        self._number = 0
        self._consecutive_failures = 0

    def plan(self) -> list[Batch]:
        """The full static batch list, ignoring any later shrink."""
        if not self.entries:
            return []
        if self.single_batch:
            return [Batch(1, tuple(self.entries))]
        size = max(1, self.settings.batch_size)
        return [
            Batch(number, tuple(self.entries[start:start + size]))
            for number, start in enumerate(range(0, len(self.entries), size), 1)
        ]

    @property
    def remaining_entries(self) -> int:
        return len(self.entries) - self._position

    @property
    def remaining_batches(self) -> int:
        if self.remaining_entries <= 0:
            return 0
        if self.single_batch:
            return 1
        return math.ceil(self.remaining_entries / self.batch_size)

    @property
    def total_batches(self) -> int:
        """Batches handed out so far plus those still to come."""
        return self._number + self.remaining_batches

    def next_batch(self, existing_groups: Iterable[str] = ()) -> Batch | None:
        """
        Take the next batch.

        Args:
            existing_groups: Group names accepted so far, offered to the
                classifier for reuse. Ignored in single-batch mode.

        Returns:
            The next Batch, or None when every entry has been handed out.
        """
        if self.remaining_entries <= 0:
            return None

        size = len(self.entries) if self.single_batch else self.batch_size
        chunk = self.entries[self._position:self._position + size]
        self._position += len(chunk)
        self._number += 1

        existing = () if self.single_batch else tuple(existing_groups)
        return Batch(self._number, tuple(chunk), existing)

    def record_result(self, succeeded: bool) -> bool:
        """
        Track the outcome of the last batch.

        Returns:
            True if the batch size was reduced.
        """
        if succeeded:
            self._consecutive_failures = 0
            return False

        self._consecutive_failures += 1
        if self._consecutive_failures < 2 or self.batch_size <= self.settings.min_batch_size:
            return False

        self.batch_size = max(self.settings.min_batch_size, int(self.batch_size * self.settings.shrink_factor))
        self._consecutive_failures = 0
        return True
