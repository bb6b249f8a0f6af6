"""
Planning module for TidyAI.

Provides:
- Batch planning with adaptive batch size
- Response reconciliation (extraction, truncation check, filtering)
- Merging and conflict resolution
- The end-to-end classification pipeline
"""

from .batches import BatchPlanner
from .reconcile import reconcile, extract_json_candidate, clean_group_name
from .merge import merge, find_conflicts, resolve_conflicts
from .pipeline import OrganizationPipeline, PipelineReport, PipelineResult

__all__ = [
    "BatchPlanner",
    "reconcile",
    "extract_json_candidate",
    "clean_group_name",
    "merge",
    "find_conflicts",
    "resolve_conflicts",
    "OrganizationPipeline",
    "PipelineReport",
    "PipelineResult",
]
