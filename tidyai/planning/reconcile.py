"""
Turn raw classifier text into validated groups.

The classifier answer is untrusted: it may be wrapped in markdown, cut off at
the token limit, or mention names that do not exist. Everything that comes
out of reconcile() refers only to snapshot entries, spelled the way the
snapshot spells them.
"""

import json
import re
from typing import Iterable

from ..exceptions import InvalidStructureError, TruncatedResponseError
from ..llm.client import sanitize_for_transport
from ..models import Group, GroupedItems, is_safe_segment, name_key
from ..utils import print_warning

# Short answers are only flagged when clearly cut mid-element
SHORT_PAYLOAD_CHARS = 100

_FENCE = re.compile(r"```(?:json|JSON)?[ \t]*\n?([\s\S]*?)(?:```|\Z)")
_UNSAFE_GROUP_CHARS = re.compile(r"[/\\:\x00]")

_CLOSERS = {"{": "}", "[": "]"}


def scan_brackets(text: str) -> tuple[list[str], bool]:
    """
    Walk the text and track open brackets, ignoring those inside strings.

    Returns:
        (stack of unclosed openers, whether the text ends inside a string)
    """
    stack: list[str] = []
    in_string = False
    escaped = False

    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in "{[":
            stack.append(char)
        elif char in "}]":
            if stack and _CLOSERS[stack[-1]] == char:
                stack.pop()

    return stack, in_string


def extract_json_candidate(text: str) -> str:
    """
    Pull the JSON payload out of a classifier answer.

    Markdown fences are unwrapped (an unterminated fence is tolerated). The
    first complete array of group objects wins; a lone group object is
    wrapped in an array; otherwise the text from the first bracket onward
    is returned so the truncation check can look at it.
    """
    text = text.strip()
    if "```" in text:
        match = _FENCE.search(text)
        if match:
            text = match.group(1).strip()

    decoder = json.JSONDecoder()

    for match in re.finditer(r"\[", text):
        start = match.start()
        try:
            value, end = decoder.raw_decode(text, start)
        except ValueError:
            # An outer array cut short: hand it to the truncation check
            # rather than picking an inner array out of it
            stack, in_string = scan_brackets(text[start:])
            if stack or in_string:
                return text[start:]
            continue
        # An "items" array is not a grouping
        if isinstance(value, list) and all(isinstance(v, dict) and "folderName" in v for v in value):
            return text[start:end]

    for match in re.finditer(r"\{", text):
        try:
            value, end = decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        if isinstance(value, dict) and "folderName" in value:
            return "[" + text[match.start():end] + "]"

    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    return text[min(starts):] if starts else text


def check_truncation(candidate: str) -> str:
    """
    Reject payloads that were cut off, repairing the one safe case.

    A payload whose only defect is a missing outer closer (trailing commas
    and whitespace allowed) gets the closer appended. That repair is only
    attempted on short payloads; a long payload that does not balance was
    cut by the token limit and is missing groups.

    Returns:
        The (possibly repaired) payload.

    Raises:
        TruncatedResponseError: If the payload is truncated.
    """
    stack, in_string = scan_brackets(candidate)
    if not stack and not in_string:
        return candidate

    if len(candidate) >= SHORT_PAYLOAD_CHARS or in_string or len(stack) > 1:
        raise TruncatedResponseError(
            f"Response appears truncated ({len(stack)} unclosed brackets"
            f"{', inside a string' if in_string else ''})"
        )

    return candidate.rstrip().rstrip(",").rstrip() + _CLOSERS[stack[0]]


def clean_group_name(name: str) -> str | None:
    """
    Make a group name usable as one path segment.

    Returns:
        The cleaned name, or None if nothing usable is left.
    """
    cleaned = _UNSAFE_GROUP_CHARS.sub("-", name).strip()
    if not is_safe_segment(cleaned):
        return None
    return cleaned


def _parse_groups(candidate: str) -> list[tuple[str, list[str]]]:
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise InvalidStructureError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise InvalidStructureError("Response is not a JSON array of folders")

    parsed = []
    for element in data:
        if not isinstance(element, dict):
            raise InvalidStructureError(f"Folder entry is not an object: {element!r}")
        folder_name = element.get("folderName")
        items = element.get("items")
        if not isinstance(folder_name, str) or not isinstance(items, list):
            raise InvalidStructureError("Folder entry needs a string 'folderName' and an 'items' list")

        names = []
        for item in items:
            if isinstance(item, dict) and isinstance(item.get("name"), str):
                names.append(item["name"])
            elif isinstance(item, str):
                names.append(item)
        parsed.append((folder_name, names))
    return parsed


def _name_lookup(known_names: Iterable[str]) -> dict[str, str]:
    """Map comparison keys (plain and transport-sanitized) to snapshot spellings."""
    lookup: dict[str, str] = {}
    known = list(known_names)
    for name in known:
        lookup[name_key(name)] = name
    for name in known:
        lookup.setdefault(name_key(sanitize_for_transport(name)), name)
    return lookup


def reconcile(raw_text: str, known_names: Iterable[str]) -> GroupedItems:
    """
    Parse and validate one classifier answer.

    Args:
        raw_text: The response content as returned by the gateway.
        known_names: Names of the entries the request was about.

    Returns:
        Groups that reference known entries only. Empty if the classifier
        placed nothing.

    Raises:
        TruncatedResponseError: The answer was cut off.
        InvalidStructureError: The answer is not a usable grouping.
    """
    candidate = extract_json_candidate(raw_text)
    if not candidate:
        raise InvalidStructureError("No JSON found in response")

    candidate = check_truncation(candidate)

    if candidate.strip() != "[]" and ('"folderName"' not in candidate or '"items"' not in candidate):
        raise InvalidStructureError("Response lacks 'folderName'/'items' fields")

    lookup = _name_lookup(known_names)
    groups: dict[str, Group] = {}
    unknown: list[str] = []
    rejected_folders: list[str] = []

    for folder_name, names in _parse_groups(candidate):
        cleaned = clean_group_name(folder_name)
        if cleaned is None:
            rejected_folders.append(folder_name)
            continue

        group = groups.setdefault(name_key(cleaned), Group(cleaned))
        for name in names:
            canonical = lookup.get(name_key(name))
            if canonical is None:
                canonical = lookup.get(name_key(sanitize_for_transport(name)))
            if canonical is None:
                unknown.append(name)
                continue
            group.add(canonical)

    if unknown:
        preview = ", ".join(unknown[:5])
        more = f" and {len(unknown) - 5} more" if len(unknown) > 5 else ""
        print_warning(f"Ignored {len(unknown)} unknown item(s) from classifier: {preview}{more}")
    if rejected_folders:
        print_warning(f"Ignored {len(rejected_folders)} folder(s) with unusable names")

    return [g for g in groups.values() if g.items]
