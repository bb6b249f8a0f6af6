"""
The classification pipeline: batches, recovery, conflict resolution and the
catch-all group.

Whatever the classifier does, the grouping that comes out of run() places
every snapshot entry in exactly one group.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from ..config import PipelineSettings
from ..exceptions import ClassificationFailedError, ClassifierError, TruncatedResponseError
from ..models import Entry, Group, MasterGrouping, UNORGANIZED_GROUP
from ..utils import console, print_error, print_info, print_success, print_warning
from .batches import BatchPlanner
from .merge import merge, resolve_conflicts
from .reconcile import reconcile

MAX_ATTEMPTS = 2


@dataclass
class PipelineReport:
    batches_total: int = 0
    failed_batches: list[int] = field(default_factory=list)
    requests_succeeded: int = 0
    recovered: int = 0
    conflicts_resolved: int = 0
    unorganized: int = 0


@dataclass
class PipelineResult:
    grouping: MasterGrouping
    report: PipelineReport


class OrganizationPipeline:
    """
    Drives the classifier over a snapshot.

    Args:
        gateway: A ClassifierGateway (or anything with the same three
            classify/resolve methods).
        settings: Batching and retry settings.
    """

    def __init__(self, gateway, settings: PipelineSettings | None = None):
        self.gateway = gateway
        self.settings = settings or PipelineSettings()

    def _request(self, call: Callable[[], str], known_names: Iterable[str], label: str) -> list[Group] | None:
        """
        Make one classifier request with a single retry.

        Truncated answers are not retried: the same payload would be cut off
        again.

        Returns:
            The reconciled groups, or None if the request failed.
        """
        known = list(known_names)
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return reconcile(call(), known)
            except TruncatedResponseError as e:
                print_warning(f"{label}: {e}")
                return None
            except ClassifierError as e:
                if attempt < MAX_ATTEMPTS:
                    print_warning(f"{label} failed ({e}); retrying in {self.settings.retry_delay:g}s")
                    time.sleep(self.settings.retry_delay)
                else:
                    print_error(f"{label} failed after retry: {e}")
        return None

    def _run_batches(self, planner: BatchPlanner, master: MasterGrouping, report: PipelineReport) -> None:
        while True:
            batch = planner.next_batch(master.group_names())
            if batch is None:
                break
            report.batches_total += 1

            label = f"Batch {batch.number}"
            status = f"Processing batch {batch.number}/{planner.total_batches} ({len(batch)} items)..."
            with console.status(status):
                groups = self._request(lambda: self.gateway.classify_batch(batch), batch.names, label)

            if groups is None:
                report.failed_batches.append(batch.number)
                if planner.record_result(False):
                    print_warning(f"Repeated failures; reducing batch size to {planner.batch_size}")
                continue

            planner.record_result(True)
            report.requests_succeeded += 1
            merge(master, groups)
            print_success(f"{label}: {sum(len(g) for g in groups)}/{len(batch)} items placed")

    def _run_recovery(self, entries: list[Entry], chunk_size: int, master: MasterGrouping, report: PipelineReport) -> None:
        missing = master.missing(entries)
        if not missing:
            return

        print_info(f"Recovering {len(missing)} unplaced item(s)")
        for start in range(0, len(missing), chunk_size):
            chunk = missing[start:start + chunk_size]
            with console.status(f"Recovering {len(chunk)} items..."):
                groups = self._request(
                    lambda: self.gateway.classify_recovery(chunk, master.group_names()),
                    [e.name for e in chunk],
                    "Recovery",
                )
            if groups is None:
                continue
            report.requests_succeeded += 1
            before = len(master.missing(chunk))
            merge(master, groups)
            report.recovered += before - len(master.missing(chunk))

    def run(self, entries: Iterable[Entry]) -> PipelineResult:
        """
        Classify every entry.

        An empty grouping means the classifier answered but proposed no
        folders at all; there is nothing to apply.

        Raises:
            ClassificationFailedError: If no classifier request succeeded.
            CoverageError: If the final grouping does not place every entry
                exactly once.
        """
        entries = list(entries)
        master = MasterGrouping()
        report = PipelineReport()
        if not entries:
            return PipelineResult(master, report)

        planner = BatchPlanner(entries, self.settings)
        if planner.single_batch:
            print_info(f"Classifying {len(entries)} items in a single request")
        else:
            print_info(f"Classifying {len(entries)} items in {planner.remaining_batches} batches")

        self._run_batches(planner, master, report)
        self._run_recovery(entries, planner.batch_size, master, report)

        if report.requests_succeeded == 0:
            raise ClassificationFailedError("No classifier request succeeded; nothing was changed")

        if not master:
            print_info("The classifier suggested no folders; leaving everything in place")
            return PipelineResult(master, report)

        _, report.conflicts_resolved = resolve_conflicts(master, self.gateway)

        leftover = master.missing(entries)
        if leftover:
            report.unorganized = len(leftover)
            print_warning(f"{len(leftover)} item(s) could not be classified; using '{UNORGANIZED_GROUP}'")
            master.add_group(Group(UNORGANIZED_GROUP, [e.name for e in leftover]))

        master.verify_coverage(entries)
        return PipelineResult(master, report)
