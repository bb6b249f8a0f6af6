"""
Grouping execution for TidyAI.

Applies a conflict-free MasterGrouping to the target directory: one folder
per group, one move per entry. The undo record is written before anything
on disk changes.
"""

import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable

from tqdm import tqdm

from .config import RunContext
from .models import Group, MasterGrouping, MoveFailure, UndoRecord, name_key
from .scanner import list_structure
from .undo import UndoManager
from .utils import print_info

MoveEntry = Callable[[str, str], object]


@dataclass
class ApplyReport:
    moved_count: int = 0
    total: int = 0
    skipped: list[str] = field(default_factory=list)
    failures: list[MoveFailure] = field(default_factory=list)
    created_folders: list[str] = field(default_factory=list)
    renamed_groups: dict[str, str] = field(default_factory=dict)
    record_saved: bool = False


def resolve_folder_names(grouping: MasterGrouping, existing_names: list[str]) -> dict[str, str]:
    """
    Pick an on-disk folder name for every group.

    A group whose name is already taken by a top-level entry gets a `_1`,
    `_2`, ... suffix, so existing entries are never merged into or shadowed
    by a group folder.

    Returns:
        Map of group name -> folder name, for the groups that were renamed.
    """
    taken = {name_key(n) for n in existing_names}
    renamed: dict[str, str] = {}

    for group in grouping:
        folder_name = group.name
        counter = 1
        while name_key(folder_name) in taken:
            folder_name = f"{group.name}_{counter}"
            counter += 1
        taken.add(name_key(folder_name))
        if folder_name != group.name:
            renamed[group.name] = folder_name

    return renamed


def _move_entry(src: Path, dst: Path, move_entry: MoveEntry) -> dict:
    """Move one entry and report what happened."""
    res = {"name": src.name, "dst": str(dst), "status": "skipped", "error": None}

    if not src.exists() and not src.is_symlink():
        # Already moved, or never existed
        return res

    if dst.exists() or dst.is_symlink():
        res["status"] = "failed"
        res["error"] = "Destination exists"
        return res

    try:
        move_entry(str(src), str(dst))
    except OSError as e:
        res["status"] = "failed"
        res["error"] = str(e)
        return res

    res["status"] = "moved"
    return res


def apply_grouping(
    grouping: MasterGrouping,
    context: RunContext,
    move_entry: MoveEntry | None = None,
    save_record: bool = True,
) -> ApplyReport:
    """
    Apply (or, for a dry run, preview) a grouping.

    Args:
        grouping: The final grouping; every entry in exactly one group.
        context: Target directory and run flags.
        move_entry: Move primitive, defaults to shutil.move.
        save_record: Write the undo record first. Only disabled when the
            user agreed to continue without undo.

    Returns:
        An ApplyReport. Item-level problems are collected there; they never
        abort the run.

    Raises:
        NotAccessibleError: If the target cannot be listed.
        UndoRecordError: If the undo record cannot be written. Nothing has
            been changed at that point.
    """
    move_entry = move_entry or shutil.move
    root = Path(context.target)
    report = ApplyReport(total=grouping.item_count())

    structure = list_structure(root)
    report.renamed_groups = resolve_folder_names(grouping, [item["name"] for item in structure])
    for old, new in report.renamed_groups.items():
        print_info(f"Folder '{old}' already exists; using '{new}'")
    grouping = MasterGrouping(
        Group(report.renamed_groups.get(g.name, g.name), g.items) for g in grouping
    )

    if context.dry_run:
        print_info("[DRY-RUN] No changes will be made")
        shown = 0
        for group in grouping:
            for name in group.items:
                shown += 1
                if shown <= 10:
                    print_info(f"  [WOULD MOVE] {name} -> {group.name}/")
        if shown > 10:
            print_info(f"  ... and {shown - 10} more")
        return report

    if save_record:
        record = UndoRecord(
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            target_path=str(root),
            original_structure=structure,
            new_structure=grouping.to_list(),
        )
        UndoManager(root).save_record(record)
        report.record_saved = True

    with tqdm(total=report.total, unit="item") as pbar:
        for group in grouping:
            folder = root / group.name
            if not folder.exists():
                try:
                    folder.mkdir()
                except OSError as e:
                    for name in group.items:
                        report.failures.append(MoveFailure(name, str(folder), f"Failed to create folder: {e}"))
                    pbar.update(len(group))
                    continue
                report.created_folders.append(group.name)

            for name in group.items:
                res = _move_entry(root / name, folder / name, move_entry)
                if res["status"] == "moved":
                    report.moved_count += 1
                elif res["status"] == "skipped":
                    report.skipped.append(name)
                else:
                    report.failures.append(MoveFailure(name, res["dst"], res["error"]))
                    tqdm.write(f"[ERROR] {res['error']}: {name}")
                pbar.update(1)

    print_info(
        f"Complete: {report.moved_count}/{report.total} moved, "
        f"{len(report.skipped)} skipped, {len(report.failures)} failed"
    )
    return report
