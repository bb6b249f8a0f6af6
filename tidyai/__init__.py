"""
TidyAI
======

A command-line tool that asks an OpenAI-compatible LLM to sort the top level
of a folder into named subfolders, applies the result, and can undo it.
"""

__version__ = "2.1.0"

from .llm import ClassifierGateway
from .config import PipelineSettings, ProviderConfig, RunContext, load_provider_config
from .scanner import snapshot_directory
from .planning import OrganizationPipeline, reconcile, resolve_conflicts
from .executor import apply_grouping
from .undo import UndoManager

__all__ = [
    "ClassifierGateway",
    "PipelineSettings",
    "ProviderConfig",
    "RunContext",
    "load_provider_config",
    "snapshot_directory",
    "OrganizationPipeline",
    "reconcile",
    "resolve_conflicts",
    "apply_grouping",
    "UndoManager",
]
