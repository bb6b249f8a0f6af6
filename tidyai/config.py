"""
Configuration for TidyAI.

Provider settings resolve in this order: explicit CLI flag, environment
variable (a local .env file is honoured), then the provider preset.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

from .exceptions import ConfigError
from .llm.models import (
    DEFAULT_AZURE_API_VERSION,
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    get_provider_preset,
)

UNDO_FILENAME = ".tidyai"

ENV_VARS = {
    "provider": "TIDYAI_PROVIDER",
    "api_base": "TIDYAI_API_BASE",
    "api_path": "TIDYAI_API_PATH",
    "model": "TIDYAI_MODEL",
    "api_key": "TIDYAI_API_KEY",
    "auth_header": "TIDYAI_AUTH_HEADER",
    "auth_scheme": "TIDYAI_AUTH_SCHEME",
    "azure_api_version": "AZURE_API_VERSION",
}
LEGACY_API_KEY_VAR = "TidyAIOpenAIAPIKey"


@dataclass
class ProviderConfig:
    """Where and how to reach the classification endpoint."""
    provider: str = DEFAULT_PROVIDER
    api_base: str = ""
    api_path: str = ""
    model: str = DEFAULT_MODEL
    api_key: str = ""
    auth_header: str = "Authorization"
    auth_scheme: str = "Bearer"
    azure_api_version: str = DEFAULT_AZURE_API_VERSION
    timeout: float = 120.0

    @property
    def url(self) -> str:
        return self.api_base.rstrip("/") + self.api_path

    def auth_headers(self) -> dict[str, str]:
        value = f"{self.auth_scheme} {self.api_key}" if self.auth_scheme else self.api_key
        return {self.auth_header: value}

    def validate(self) -> None:
        """
        Check that the endpoint can be called.

        Raises:
            ConfigError: If the API key, base URL or path is missing.
        """
        if not self.api_key:
            raise ConfigError(
                "API key not configured. Set TIDYAI_API_KEY (or legacy TidyAIOpenAIAPIKey), "
                "or pass --api-key / --api-key-env VAR."
            )
        if not self.api_base or not self.api_path:
            raise ConfigError(
                f"API base/path not set (base='{self.api_base}', path='{self.api_path}', "
                f"provider='{self.provider}'). Use --api-base/--api-path or TIDYAI_API_BASE/TIDYAI_API_PATH."
            )


@dataclass
class PipelineSettings:
    """Knobs for batching and retrying classifier calls."""
    single_batch_threshold: int = 75
    batch_size: int = 75
    min_batch_size: int = 25
    shrink_factor: float = 0.7
    retry_delay: float = 5.0
    request_size_warning: int = 100_000


@dataclass
class RunContext:
    """Everything one run needs, passed explicitly through the pipeline."""
    target: Path
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    settings: PipelineSettings = field(default_factory=PipelineSettings)
    dry_run: bool = False
    assume_yes: bool = False


def load_provider_config(
    overrides: Mapping[str, str | None] | None = None,
    env: Mapping[str, str] | None = None,
    load_env_file: bool = True,
) -> ProviderConfig:
    """
    Build the provider configuration.

    Args:
        overrides: Values from CLI flags. None means "not given"; an empty
            string is an explicit value (e.g. --auth-scheme '' for Azure).
            The special key "api_key_env" names a variable to read the key from.
        env: Environment mapping (defaults to os.environ).
        load_env_file: Load a .env file into os.environ first.

    Returns:
        The resolved ProviderConfig (not yet validated).
    """
    if load_env_file and env is None:
        load_dotenv()
    env = os.environ if env is None else env
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    def pick(key: str) -> str | None:
        if key in overrides:
            return overrides[key]
        value = env.get(ENV_VARS[key], "")
        return value or None

    provider = (pick("provider") or DEFAULT_PROVIDER).lower()
    preset = get_provider_preset(provider)
    model = pick("model") or DEFAULT_MODEL
    api_version = pick("azure_api_version") or DEFAULT_AZURE_API_VERSION

    api_path = pick("api_path")
    if api_path is None:
        api_path = preset["api_path"].format(model=model, api_version=api_version)

    api_key = overrides.get("api_key")
    if api_key is None and overrides.get("api_key_env"):
        api_key = env.get(overrides["api_key_env"], "")
    if api_key is None:
        api_key = env.get(ENV_VARS["api_key"]) or env.get(LEGACY_API_KEY_VAR, "")

    auth_header = pick("auth_header")
    auth_scheme = pick("auth_scheme")
    api_base = pick("api_base")

    config = ProviderConfig(
        provider=provider,
        api_base=api_base if api_base is not None else preset["api_base"],
        api_path=api_path,
        model=model,
        api_key=api_key,
        auth_header=auth_header if auth_header is not None else preset["auth_header"],
        auth_scheme=auth_scheme if auth_scheme is not None else preset["auth_scheme"],
        azure_api_version=api_version,
    )
    if "timeout" in overrides:
        config.timeout = float(overrides["timeout"])
    return config
