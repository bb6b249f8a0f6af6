"""
Directory snapshotting.

Only direct children of the target are classifiable entries. Subfolders get
one extra level of metadata (counts and a few sample files) purely as context
for the classifier.
"""

import os
import time
from datetime import datetime
from pathlib import Path
from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import TAGS

from .config import UNDO_FILENAME
from .exceptions import NameCollisionError, NotAccessibleError
from .models import AgeBucket, Entry, EntryKind, SizeBucket, name_key
from .utils import file_extension, is_bundle

# Entries never offered to the classifier
IGNORE_NAMES = {
    UNDO_FILENAME, UNDO_FILENAME + ".tmp",
    'System Volume Information', '$RECYCLE.BIN', '.fseventsd', '.Spotlight-V100', '.Trashes'
}

MAX_SAMPLES = 5
MEDIUM_SIZE_BYTES = 10 * 1024 * 1024
LARGE_SIZE_BYTES = 100 * 1024 * 1024
RECENT_SECONDS = 30 * 24 * 3600
EXIF_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.tiff', '.webp', '.heic'}


def get_exif_date(filepath: Path) -> datetime | None:
    """Extract the 'DateTimeOriginal' (or 'DateTime') from an image's EXIF data."""
    try:
        with Image.open(filepath) as img:
            exif = img.getexif()
            if not exif:
                return None

            # Prefer DateTimeOriginal, fall back to DateTime
            for wanted in ('DateTimeOriginal', 'DateTime'):
                for tag_id in exif:
                    if TAGS.get(tag_id, tag_id) != wanted:
                        continue
                    # Format is "YYYY:MM:DD HH:MM:SS"
                    date_str = exif.get(tag_id)
                    try:
                        return datetime.strptime(str(date_str)[:19], "%Y:%m:%d %H:%M:%S")
                    except ValueError:
                        continue
    except (UnidentifiedImageError, OSError, ValueError):
        pass
    return None


def size_bucket(size_bytes: int) -> SizeBucket:
    if size_bytes > LARGE_SIZE_BYTES:
        return SizeBucket.LARGE
    if size_bytes > MEDIUM_SIZE_BYTES:
        return SizeBucket.MEDIUM
    return SizeBucket.SMALL


def age_bucket(timestamp: float, now: float) -> AgeBucket:
    return AgeBucket.RECENT if now - timestamp < RECENT_SECONDS else AgeBucket.OLD


def _effective_mtime(path: Path, stat: os.stat_result) -> float:
    """Modification time, or the EXIF capture time for photos."""
    if file_extension(path.name).lower() in EXIF_EXTENSIONS:
        taken = get_exif_date(path)
        if taken is not None:
            return taken.timestamp()
    return stat.st_mtime


def _file_entry(path: Path, now: float) -> Entry:
    try:
        stat = path.stat()
        size = stat.st_size
        mtime = _effective_mtime(path, stat)
    except OSError:
        # Dangling symlink or unreadable file: still an entry, just without details
        size, mtime = 0, 0.0
    return Entry(
        name=path.name,
        kind=EntryKind.FILE,
        extension=file_extension(path.name),
        size_bucket=size_bucket(size),
        age_bucket=age_bucket(mtime, now),
    )


def _folder_entry(path: Path, now: float) -> Entry:
    """Build a folder entry with one level of content sampling."""
    file_count = 0
    subfolder_count = 0
    total_size = 0
    samples: list[Entry] = []
    sample_allowed = not is_bundle(path.name)

    try:
        with os.scandir(path) as it:
            children = sorted(it, key=lambda c: c.name)
    except OSError:
        children = []

    for child in children:
        try:
            if child.is_dir(follow_symlinks=False):
                subfolder_count += 1
                continue
            file_count += 1
            total_size += child.stat(follow_symlinks=False).st_size
        except OSError:
            continue
        if sample_allowed and len(samples) < MAX_SAMPLES:
            samples.append(_file_entry(Path(child.path), now))

    try:
        mtime = path.stat().st_mtime
    except OSError:
        mtime = 0.0

    return Entry(
        name=path.name,
        kind=EntryKind.FOLDER,
        size_bucket=size_bucket(total_size),
        age_bucket=age_bucket(mtime, now),
        sample_contents=tuple(samples),
        file_count=file_count,
        subfolder_count=subfolder_count,
    )


def find_case_collisions(names) -> list[list[str]]:
    """Groups of names that compare equal case-insensitively."""
    by_key: dict[str, list[str]] = {}
    for name in names:
        by_key.setdefault(name_key(name), []).append(name)
    return [spellings for spellings in by_key.values() if len(spellings) > 1]


def snapshot_directory(root: Path, now: float | None = None) -> list[Entry]:
    """
    Snapshot the top-level entries of a directory.

    Args:
        root: The directory to organize.
        now: Reference time for age buckets (defaults to the current time).

    Returns:
        Entries sorted by name. Hidden entries are included; the undo record
        and OS housekeeping folders are not.

    Raises:
        NotAccessibleError: If the directory does not exist or cannot be listed.
        NameCollisionError: If two names differ only by case.
    """
    root = Path(root)
    now = time.time() if now is None else now

    if not root.is_dir():
        raise NotAccessibleError(f"Folder path does not exist or is not accessible: {root}")

    # Enumerate fully before building entries: all or nothing
    try:
        with os.scandir(root) as it:
            children = [(c.name, c.is_dir(follow_symlinks=False)) for c in it]
    except OSError as e:
        raise NotAccessibleError(f"Cannot list {root}: {e}") from e

    children = [(name, is_dir) for name, is_dir in sorted(children) if name not in IGNORE_NAMES]
    collisions = find_case_collisions(name for name, _ in children)
    if collisions:
        raise NameCollisionError(
            "Names that differ only by case cannot be organized: "
            + "; ".join(" / ".join(group) for group in collisions)
        )

    entries = []
    for name, is_dir in children:
        path = root / name
        entries.append(_folder_entry(path, now) if is_dir else _file_entry(path, now))
    return entries


def list_structure(root: Path) -> list[dict]:
    """
    Current top-level names and kinds, as stored in the undo record.

    Raises:
        NotAccessibleError: If the directory cannot be listed.
    """
    try:
        with os.scandir(root) as it:
            children = sorted((c.name, c.is_dir(follow_symlinks=False)) for c in it)
    except OSError as e:
        raise NotAccessibleError(f"Cannot list {root}: {e}") from e
    return [
        {"name": name, "type": EntryKind.FOLDER.value if is_dir else EntryKind.FILE.value}
        for name, is_dir in children
        if name not in IGNORE_NAMES
    ]
