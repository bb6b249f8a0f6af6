"""
Prompt builders for the classifier.

Provides prompts for:
- Bulk classification of a batch of entries
- Recovery of entries missed by earlier passes
- Conflict resolution for entries placed in more than one group

Each builder returns a (system_message, user_prompt) pair.
"""

import json
from typing import Iterable

from ..models import Batch, Conflict, Entry, EntryKind

BULK_SYSTEM = (
    "You are TidyAI, an intelligent file organization expert. Analyze file names and size, "
    "patterns, dates, projects, and purposes. Create meaningful folder structures based on "
    "content similarity and purpose, not just file extensions. Think like a human organizing "
    "their digital workspace - group related files together."
)

RECOVERY_SYSTEM = (
    "You are TidyAI recovery processor. Place missed files into the most appropriate existing "
    "folders. Only create new folders if absolutely necessary."
)

CONFLICT_SYSTEM = (
    "You are an expert at file organization. You MUST respond with ONLY valid JSON - no "
    "explanations, no markdown, no extra text. Choose the most logical folder for each file "
    "based on its name and type."
)


def build_bulk_prompt(batch: Batch) -> tuple[str, str]:
    """
    Build the prompt for classifying one batch.

    Args:
        batch: The batch to classify, with the group names accepted so far.

    Returns:
        (system_message, user_prompt)
    """
    file_count = sum(1 for e in batch.entries if e.kind is EntryKind.FILE)
    folder_count = len(batch) - file_count

    if batch.existing_groups:
        existing_text = "Existing folders to reuse: " + ", ".join(batch.existing_groups)
    else:
        existing_text = "No existing folders - create new structure"

    payload_json = json.dumps(batch.to_payload(), ensure_ascii=False)

    prompt = f"""Organize these {len(batch)} items ({file_count} files and {folder_count} folders) into logical, intelligent folders based on content patterns and purpose.

## Organization Principles

- Each item appears in EXACTLY ONE folder (zero duplicates allowed)
- Preserve ALL original names exactly as provided
- Create 3-8 meaningful folders with descriptive names
- Group by purpose, project, or content type
- Avoid generic names like "Other" or "Miscellaneous"
- Consider extensions, names, dates, and folder contents for context
- Balance folder sizes (avoid 1-item folders unless specialized)

## Folders Are Items Too

- Items with "type": "folder" MUST be organized exactly like files
- Group related folders together (e.g. "Project1" and "Project2" into "Projects")

## Sample Files Are Context Only

- "sampleFiles" lists files INSIDE a folder so you can understand it
- NEVER include a name from "sampleFiles" in your response
- ONLY organize the items listed at the top level of "items"

## Folder Naming

- Use specific, descriptive names that reflect the actual content
- Include context like dates, projects, or purposes when relevant
- Examples: "Invoice Records 2024", "Project Phoenix Documentation", "System Installation Files"

{existing_text}

## Items to organize

{payload_json}

## Output Format

Respond with ONLY valid JSON (no explanations):
[{{"folderName": "Descriptive Name", "items": [{{"name": "exact-filename-or-foldername"}}]}}]
"""
    return BULK_SYSTEM, prompt


def build_recovery_prompt(entries: Iterable[Entry], existing_groups: Iterable[str]) -> tuple[str, str]:
    """
    Build the prompt for entries that earlier passes failed to place.

    Args:
        entries: The missed entries.
        existing_groups: Group names already in the master grouping.

    Returns:
        (system_message, user_prompt)
    """
    existing = list(existing_groups)
    existing_text = "Current folder structure: " + (", ".join(existing) if existing else "(none yet)")
    payload_json = json.dumps({"items": [e.to_prompt_dict() for e in entries]}, ensure_ascii=False)

    prompt = f"""These items were missed during batch processing and need to be organized.
{existing_text}

## Organization Principles

- Each item appears in EXACTLY ONE folder
- Preserve ALL original names exactly
- REUSE existing folders when appropriate
- Only create new folders if absolutely necessary
- Group by file type and purpose

## Missed items to organize

{payload_json}

## Output Format

Respond with ONLY valid JSON (no explanations):
[{{"folderName": "Folder Name", "items": [{{"name": "exact-filename.ext"}}]}}]
"""
    return RECOVERY_SYSTEM, prompt


def build_conflict_prompt(conflicts: Iterable[Conflict]) -> tuple[str, str]:
    """
    Build the prompt asking for one folder per conflicted entry.

    Args:
        conflicts: Entries with their candidate folders.

    Returns:
        (system_message, user_prompt)
    """
    payload_json = json.dumps([c.to_prompt_dict() for c in conflicts], ensure_ascii=False, indent=2)

    prompt = f"""Each of these items was placed in more than one folder. Choose EXACTLY ONE folder for each item, picking only from its "candidateFolders".

{payload_json}

Respond with ONLY a JSON object mapping each item name to the chosen folder:
{{"exact-item-name.ext": "Chosen Folder"}}
"""
    return CONFLICT_SYSTEM, prompt
