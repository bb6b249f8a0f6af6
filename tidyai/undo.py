"""
Undo support.

Before the first move, the executor writes a `.tidyai` record into the target
directory. Its presence is what tells the next run that a previous
organization can be reversed.
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .config import UNDO_FILENAME
from .exceptions import UndoRecordError
from .models import MoveFailure, UndoRecord, name_key
from .utils import load_json, print_info, print_success, print_warning, save_json


@dataclass
class RestoreReport:
    restored: int = 0
    failures: list[MoveFailure] = field(default_factory=list)
    removed_folders: list[str] = field(default_factory=list)
    missing_originals: list[str] = field(default_factory=list)
    record_deleted: bool = False

    @property
    def complete(self) -> bool:
        return not self.failures and not self.missing_originals


def _remove_existing(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


class UndoManager:
    """Reads, writes and replays the undo record of one target directory."""

    def __init__(self, target: Path):
        self.target = Path(target)
        self.record_path = self.target / UNDO_FILENAME

    def has_record(self) -> bool:
        return self.record_path.is_file()

    def load_record(self) -> UndoRecord:
        """
        Raises:
            UndoRecordError: If the record is missing, unreadable or malformed.
        """
        try:
            data = load_json(self.record_path)
        except (OSError, ValueError) as e:
            raise UndoRecordError(f"Cannot read undo record {self.record_path}: {e}") from e
        if not isinstance(data, dict):
            raise UndoRecordError(f"Malformed undo record: {self.record_path}")
        return UndoRecord.from_dict(data)

    def save_record(self, record: UndoRecord) -> None:
        """
        Raises:
            UndoRecordError: If the record cannot be written.
        """
        try:
            save_json(record.to_dict(), self.record_path)
        except (OSError, TypeError) as e:
            raise UndoRecordError(f"Could not save undo information: {e}") from e
        print_success("Undo information saved")

    def discard(self) -> None:
        try:
            self.record_path.unlink(missing_ok=True)
        except OSError as e:
            raise UndoRecordError(f"Could not remove undo record: {e}") from e

    def restore(self, move_entry: Callable[[str, str], object] | None = None) -> RestoreReport:
        """
        Move everything out of the recorded group folders back to the root.

        Existing root entries with the same name are overwritten. A failed
        move is reported and the rest carry on. The record is deleted only
        when nothing failed and every original top-level name is back.

        Args:
            move_entry: Move primitive, defaults to shutil.move.

        Returns:
            A RestoreReport.

        Raises:
            UndoRecordError: If there is no readable record.
        """
        move_entry = move_entry or shutil.move
        record = self.load_record()
        report = RestoreReport()

        print_info(f"Restoring organization from {record.timestamp}")

        root = self.target.resolve()
        for group_name in record.group_names:
            folder = self.target / group_name
            if folder.is_symlink() or not folder.is_dir():
                continue
            if folder.resolve().parent != root:
                print_warning(f"Skipping {group_name}: not a folder inside {self.target}")
                continue
            print_info(f"Processing folder: {group_name}")

            for child in sorted(folder.iterdir()):
                dest = self.target / child.name
                try:
                    if dest.exists() or dest.is_symlink():
                        print_warning(f"{child.name} already exists in root - overwriting")
                        _remove_existing(dest)
                    move_entry(str(child), str(dest))
                    report.restored += 1
                except OSError as e:
                    report.failures.append(MoveFailure(child.name, str(dest), str(e)))
                    print_warning(f"Failed to restore {child.name}: {e}")

            try:
                folder.rmdir()
                report.removed_folders.append(group_name)
            except OSError:
                pass

        present = {name_key(p.name) for p in self.target.iterdir()}
        report.missing_originals = [n for n in record.original_names if name_key(n) not in present]

        print_info(f"Restoration summary: {report.restored} restored, {len(report.failures)} failed")

        if report.complete:
            self.discard()
            report.record_deleted = True
            print_success("Undo completed. Original folder structure has been restored.")
        else:
            if report.missing_originals:
                print_warning(f"{len(report.missing_originals)} original item(s) not found after restore")
            print_warning("Undo record kept so the restore can be retried")

        return report
