"""
Merging batch results and resolving entries placed in several groups.
"""

import json
from typing import Iterable

from ..exceptions import ClassifierError
from ..llm.client import sanitize_for_transport
from ..models import Conflict, Group, MasterGrouping, name_key
from ..utils import print_info, print_warning
from .reconcile import extract_json_candidate


def merge(master: MasterGrouping, grouped_items: Iterable[Group]) -> MasterGrouping:
    """Fold one batch result into the master grouping."""
    master.merge(grouped_items)
    return master


def find_conflicts(master: MasterGrouping) -> list[Conflict]:
    return master.find_conflicts()


def parse_conflict_choices(raw_text: str) -> dict[str, str]:
    """
    Read a {entryName: chosenGroup} object from the classifier answer.

    Anything that is not such an object yields no choices; the caller falls
    back to the first candidate for every conflict.
    """
    text = raw_text.strip()
    if "```" in text:
        text = extract_json_candidate(text)

    start = text.find("{")
    if start == -1:
        return {}
    try:
        data, _ = json.JSONDecoder().raw_decode(text, start)
    except ValueError:
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(k): v for k, v in data.items() if isinstance(v, str)}


def _spellings(name: str) -> tuple[str, str]:
    """Keys a name may come back under, as sent or as transport-sanitized."""
    return name_key(name), name_key(sanitize_for_transport(name))


def _choose(conflict: Conflict, choices: dict[str, str]) -> tuple[str, bool]:
    """Return (group name, whether the classifier's choice was used)."""
    choice = next((choices[k] for k in _spellings(conflict.entry_name) if k in choices), None)
    if choice is not None:
        for candidate in conflict.candidate_groups:
            if name_key(choice) in _spellings(candidate):
                return candidate, True
    return conflict.candidate_groups[0], False


def resolve_conflicts(master: MasterGrouping, gateway=None) -> tuple[MasterGrouping, int]:
    """
    Leave every entry in exactly one group.

    Args:
        master: The grouping to fix in place.
        gateway: A ClassifierGateway to ask; without one (or if the request
            fails) every conflict goes to its first-encountered group.

    Returns:
        (master, number of conflicts resolved)
    """
    conflicts = master.find_conflicts()
    if not conflicts:
        return master, 0

    print_info(f"Resolving {len(conflicts)} item(s) placed in more than one folder")

    choices: dict[str, str] = {}
    if gateway is not None:
        try:
            raw = gateway.resolve_conflicts(conflicts)
            choices = {name_key(k): v for k, v in parse_conflict_choices(raw).items()}
        except ClassifierError as e:
            print_warning(f"Conflict resolution request failed ({e}); using first folder for each item")

    fallbacks = 0
    for conflict in conflicts:
        winner, decided = _choose(conflict, choices)
        if not decided:
            fallbacks += 1
        for group_name in conflict.candidate_groups:
            if name_key(group_name) == name_key(winner):
                continue
            group = master.get(group_name)
            if group is not None:
                group.remove(conflict.entry_name)

    if fallbacks and gateway is not None:
        print_warning(f"{fallbacks} conflict(s) fell back to the first folder")

    master.remove_empty_groups()
    return master, len(conflicts)
