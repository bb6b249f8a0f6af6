"""
Data model for TidyAI.

Entries come from the directory snapshot and are immutable. Groups and the
MasterGrouping carry entry *names* only; a name is the one stable handle an
entry has across the pipeline, and names are compared case-insensitively.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from .exceptions import CoverageError, UndoRecordError

UNDO_FORMAT_VERSION = "2.1.0"
UNORGANIZED_GROUP = "Unorganized Files"


def name_key(name: str) -> str:
    """Comparison key for entry and group names."""
    return name.casefold()


def is_safe_segment(name: str) -> bool:
    """True if the name can only ever address a direct child of a directory."""
    if not isinstance(name, str) or not name.strip():
        return False
    if name.strip() in (".", ".."):
        return False
    return not any(c in name for c in "/\\:\0")


class EntryKind(Enum):
    FILE = "file"
    FOLDER = "folder"


class SizeBucket(Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class AgeBucket(Enum):
    RECENT = "recent"
    OLD = "old"


@dataclass(frozen=True)
class Entry:
    """A top-level file or folder of the target directory."""
    name: str
    kind: EntryKind
    extension: str = ""
    size_bucket: SizeBucket = SizeBucket.SMALL
    age_bucket: AgeBucket = AgeBucket.OLD
    # Folder only: context for the classifier, never movable on their own
    sample_contents: tuple["Entry", ...] = ()
    file_count: int = 0
    subfolder_count: int = 0

    @property
    def is_folder(self) -> bool:
        return self.kind is EntryKind.FOLDER

    @property
    def is_empty(self) -> bool:
        return self.file_count == 0 and self.subfolder_count == 0

    def to_prompt_dict(self) -> dict:
        """Render the entry the way the classifier sees it."""
        if self.is_folder:
            return {
                "name": self.name,
                "type": self.kind.value,
                "fileCount": self.file_count,
                "subfolderCount": self.subfolder_count,
                "isEmpty": self.is_empty,
                "sampleFiles": [
                    {
                        "name": s.name,
                        "extension": s.extension,
                        "size": s.size_bucket.value,
                    }
                    for s in self.sample_contents
                ],
                "age": self.age_bucket.value,
            }
        return {
            "name": self.name,
            "type": self.kind.value,
            "ext": self.extension,
            "size": self.size_bucket.value,
            "age": self.age_bucket.value,
        }


@dataclass(frozen=True)
class Batch:
    """A bounded slice of entries sent to the classifier in one request."""
    number: int
    entries: tuple[Entry, ...]
    existing_groups: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.entries]

    def to_payload(self, context: str = "General") -> dict:
        return {
            "items": [e.to_prompt_dict() for e in self.entries],
            "count": len(self.entries),
            "existingFolders": list(self.existing_groups),
            "context": context,
        }


@dataclass
class Group:
    """A named destination folder and the entry names it will receive."""
    name: str
    items: list[str] = field(default_factory=list)

    def __post_init__(self):
        names = self.items
        self.items = []
        self.extend(names)

    def __contains__(self, name: str) -> bool:
        key = name_key(name)
        return any(name_key(item) == key for item in self.items)

    def __len__(self) -> int:
        return len(self.items)

    def add(self, name: str) -> bool:
        """Add a name unless already present. Returns True if added."""
        if name in self:
            return False
        self.items.append(name)
        return True

    def extend(self, names: Iterable[str]) -> None:
        for name in names:
            self.add(name)

    def remove(self, name: str) -> None:
        key = name_key(name)
        self.items = [item for item in self.items if name_key(item) != key]


GroupedItems = list[Group]


@dataclass(frozen=True)
class Conflict:
    """An entry that was placed into more than one group."""
    entry_name: str
    candidate_groups: tuple[str, ...]

    def to_prompt_dict(self) -> dict:
        return {"name": self.entry_name, "candidateFolders": list(self.candidate_groups)}


class MasterGrouping:
    """
    Accumulated grouping across batches and recovery passes.

    Group names are matched case-insensitively; the first spelling seen wins.
    """

    def __init__(self, groups: Iterable[Group] | None = None):
        self._groups: dict[str, Group] = {}
        if groups:
            self.merge(groups)

    def __len__(self) -> int:
        return len(self._groups)

    def __iter__(self):
        return iter(self._groups.values())

    def __bool__(self) -> bool:
        return bool(self._groups)

    def get(self, group_name: str) -> Group | None:
        return self._groups.get(name_key(group_name))

    def group_names(self) -> list[str]:
        return [g.name for g in self._groups.values()]

    def merge(self, grouped_items: Iterable[Group]) -> None:
        """Append new groups; concatenate the items of groups already present."""
        for group in grouped_items:
            key = name_key(group.name)
            existing = self._groups.get(key)
            if existing is None:
                self._groups[key] = Group(group.name, list(group.items))
            else:
                existing.extend(group.items)

    def add_group(self, group: Group) -> None:
        self.merge([group])

    def assigned_names(self) -> set[str]:
        """Name keys of every entry placed in at least one group."""
        return {name_key(item) for g in self._groups.values() for item in g.items}

    def item_count(self) -> int:
        return sum(len(g) for g in self._groups.values())

    def missing(self, entries: Iterable[Entry]) -> list[Entry]:
        """Entries that no group references."""
        assigned = self.assigned_names()
        return [e for e in entries if name_key(e.name) not in assigned]

    def find_conflicts(self) -> list[Conflict]:
        """Names that appear in two or more groups, candidates in encounter order."""
        placements: dict[str, list[str]] = defaultdict(list)
        spelling: dict[str, str] = {}
        for group in self._groups.values():
            for item in group.items:
                key = name_key(item)
                spelling.setdefault(key, item)
                if group.name not in placements[key]:
                    placements[key].append(group.name)
        return [
            Conflict(spelling[key], tuple(groups))
            for key, groups in placements.items()
            if len(groups) > 1
        ]

    def remove_empty_groups(self) -> list[str]:
        removed = [g.name for g in self._groups.values() if not g.items]
        self._groups = {k: g for k, g in self._groups.items() if g.items}
        return removed

    def verify_coverage(self, entries: Iterable[Entry]) -> None:
        """
        Check that every entry appears in exactly one group.

        Raises:
            CoverageError: If an entry is missing, duplicated, or a group
                references a name that is not in the snapshot.
        """
        expected: dict[str, str] = {}
        problems = []
        for e in entries:
            key = name_key(e.name)
            if key in expected:
                problems.append(f"indistinguishable names: {expected[key]} / {e.name}")
            expected.setdefault(key, e.name)

        counts: dict[str, int] = defaultdict(int)
        for group in self._groups.values():
            for item in group.items:
                counts[name_key(item)] += 1

        for key, name in expected.items():
            if counts.get(key, 0) == 0:
                problems.append(f"missing: {name}")
            elif counts[key] > 1:
                problems.append(f"in {counts[key]} groups: {name}")
        for key in counts:
            if key not in expected:
                problems.append(f"unknown entry: {key}")

        if problems:
            raise CoverageError("Grouping does not cover the snapshot exactly once: " + "; ".join(problems[:10]))

    def to_list(self) -> list[dict]:
        return [
            {"folderName": g.name, "items": [{"name": n} for n in g.items]}
            for g in self._groups.values()
        ]


@dataclass
class MoveFailure:
    """One entry that could not be moved."""
    name: str
    destination: str
    error: str


@dataclass
class UndoRecord:
    """Point-in-time snapshot written before the first move."""
    timestamp: str
    target_path: str
    original_structure: list[dict]
    new_structure: list[dict]
    version: str = UNDO_FORMAT_VERSION

    @property
    def group_names(self) -> list[str]:
        return [g["folderName"] for g in self.new_structure]

    @property
    def original_names(self) -> list[str]:
        return [item["name"] for item in self.original_structure]

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "targetPath": self.target_path,
            "originalStructure": self.original_structure,
            "newStructure": self.new_structure,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UndoRecord":
        """
        Raises:
            UndoRecordError: If keys are missing or a folder name is not a
                plain child name of the target directory.
        """
        try:
            record = cls(
                timestamp=str(data["timestamp"]),
                target_path=str(data["targetPath"]),
                original_structure=list(data.get("originalStructure", [])),
                new_structure=list(data["newStructure"]),
                version=str(data.get("version", UNDO_FORMAT_VERSION)),
            )
            group_names = record.group_names
        except (KeyError, TypeError) as e:
            raise UndoRecordError(f"Malformed undo record: {e}") from e

        for group_name in group_names:
            if not is_safe_segment(group_name):
                raise UndoRecordError(f"Unsafe folder name in undo record: {group_name!r}")
        return record
