"""
Provider presets and per-request settings.
"""

from enum import Enum

DEFAULT_PROVIDER = "openai"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_API_BASE = "https://api.openai.com"
DEFAULT_API_PATH = "/v1/chat/completions"
DEFAULT_AZURE_API_VERSION = "2024-02-15-preview"

# Endpoint defaults for known OpenAI-compatible providers.
# Explicit flags or environment variables always take precedence.
PROVIDER_PRESETS = {
    "openai": {
        "api_base": DEFAULT_API_BASE,
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "openrouter": {
        "api_base": "https://openrouter.ai/api",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "groq": {
        "api_base": "https://api.groq.com/openai",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "fireworks": {
        "api_base": "https://api.fireworks.ai/openai",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "together": {
        "api_base": "https://api.together.xyz",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "perplexity": {
        "api_base": "https://api.perplexity.ai",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "deepseek": {
        "api_base": "https://api.deepseek.com",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "lmstudio": {
        "api_base": "http://localhost:1234",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "localai": {
        "api_base": "http://localhost:8000",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "vllm": {
        "api_base": "http://localhost:8000",
        "api_path": DEFAULT_API_PATH,
        "auth_header": "Authorization",
        "auth_scheme": "Bearer",
    },
    "azure": {
        # Base is the resource URL (https://<resource>.openai.azure.com), model is the deployment
        "api_base": "",
        "api_path": "/openai/deployments/{model}/chat/completions?api-version={api_version}",
        "auth_header": "api-key",
        "auth_scheme": "",
    },
}


class RequestKind(Enum):
    """The three things TidyAI asks the classifier."""
    BULK = "batch"
    RECOVERY = "recovery"
    CONFLICT = "conflict"


REQUEST_CONFIG = {
    RequestKind.BULK: {
        "max_tokens": 16384,
        "temperature": 0.3,
    },
    RequestKind.RECOVERY: {
        "max_tokens": 16384,
        "temperature": 0.3,
    },
    RequestKind.CONFLICT: {
        "max_tokens": 16384,
        "temperature": 0.1,  # Forced single choice, keep it near-deterministic
    },
}


def get_provider_preset(provider: str) -> dict:
    """
    Get endpoint defaults for a provider.

    Args:
        provider: Provider name (openai, groq, azure, ...).

    Returns:
        Preset dict with api_base, api_path, auth_header and auth_scheme.
        Unknown providers get the generic OpenAI-compatible preset.
    """
    return dict(PROVIDER_PRESETS.get(provider.lower(), PROVIDER_PRESETS[DEFAULT_PROVIDER]))


def get_request_config(kind: RequestKind) -> dict:
    return dict(REQUEST_CONFIG[kind])
