"""
Classifier integration for TidyAI.

Provides:
- OpenAI-compatible chat-completion gateway
- Prompt builders for bulk, recovery and conflict requests
- Provider presets
"""

from .client import ClassifierGateway, sanitize_for_transport
from .models import PROVIDER_PRESETS, DEFAULT_MODEL, DEFAULT_PROVIDER, RequestKind
from .prompts import (
    build_bulk_prompt,
    build_recovery_prompt,
    build_conflict_prompt,
)

__all__ = [
    "ClassifierGateway",
    "sanitize_for_transport",
    "PROVIDER_PRESETS",
    "DEFAULT_MODEL",
    "DEFAULT_PROVIDER",
    "RequestKind",
    "build_bulk_prompt",
    "build_recovery_prompt",
    "build_conflict_prompt",
]
