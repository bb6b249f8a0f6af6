"""
OpenAI-compatible chat-completion client for TidyAI.

One wire shape serves every provider; the differences between providers are
configuration (base URL, path, auth header and scheme), not code.
"""

import json
import re
from typing import TYPE_CHECKING, Iterable

import requests

from ..exceptions import EmptyResponseError, TransportError, TruncatedResponseError
from ..models import Batch, Conflict, Entry
from ..utils import print_warning
from .models import RequestKind, get_request_config
from .prompts import build_bulk_prompt, build_conflict_prompt, build_recovery_prompt

if TYPE_CHECKING:
    from ..config import PipelineSettings, ProviderConfig

# Tab, LF, CR and printable ASCII survive; everything else becomes '?'
_UNSAFE_CHARS = re.compile(r"[^\t\n\r\x20-\x7e]")


def sanitize_for_transport(text: str) -> str:
    """Normalize line endings and replace characters outside the safe subset."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _UNSAFE_CHARS.sub("?", text)


def _api_error_message(payload) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "")
        if isinstance(error, str):
            return error
    return ""


class ClassifierGateway:
    """
    Sends classification requests and returns the raw response text.

    Every call either returns non-blank text or raises a ClassifierError
    subclass; the text itself is untrusted and goes through the reconciler.
    """

    def __init__(
        self,
        config: "ProviderConfig",
        settings: "PipelineSettings | None" = None,
        session: requests.Session | None = None,
    ):
        if settings is None:
            # config imports this package for its presets
            from ..config import PipelineSettings
            settings = PipelineSettings()
        self.config = config
        self.settings = settings
        self.session = session or requests.Session()

    def build_request(self, kind: RequestKind, system_message: str, prompt: str) -> dict:
        """Build the JSON body for one chat-completion call."""
        request_config = get_request_config(kind)
        return {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": sanitize_for_transport(system_message)},
                {"role": "user", "content": sanitize_for_transport(prompt)},
            ],
            "max_tokens": request_config["max_tokens"],
            "temperature": request_config["temperature"],
        }

    def complete(self, kind: RequestKind, system_message: str, prompt: str) -> str:
        """
        Call the endpoint once.

        Args:
            kind: Which request this is (bulk, recovery, conflict).
            system_message: System role content.
            prompt: User role content.

        Returns:
            The message content of the first choice.

        Raises:
            TransportError: Network failure, HTTP error, or a non-JSON body.
            TruncatedResponseError: finish_reason was "length".
            EmptyResponseError: The content was blank.
        """
        body = self.build_request(kind, system_message, prompt)

        size = len(json.dumps(body).encode("utf-8"))
        if size > self.settings.request_size_warning:
            print_warning(f"Large request size ({size} bytes) may cause truncation")

        headers = {"Content-Type": "application/json", **self.config.auth_headers()}
        url = self.config.url

        try:
            response = self.session.post(url, json=body, headers=headers, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Error communicating with API at {url}: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.ok:
            detail = _api_error_message(payload) or response.text[:200]
            raise TransportError(f"API at {url} returned HTTP {response.status_code}: {detail}")

        if not isinstance(payload, dict):
            raise TransportError(f"API at {url} returned a non-JSON body")

        choices = payload.get("choices") or [{}]
        choice = choices[0] if isinstance(choices[0], dict) else {}

        if choice.get("finish_reason") == "length":
            raise TruncatedResponseError("Response was truncated due to token limit")

        message = choice.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip() or content.strip() == "null":
            detail = _api_error_message(payload)
            msg = "Empty response received from provider"
            if detail:
                msg += f" (API Error Details: {detail})"
            raise EmptyResponseError(msg)

        return content

    def classify_batch(self, batch: Batch) -> str:
        system_message, prompt = build_bulk_prompt(batch)
        return self.complete(RequestKind.BULK, system_message, prompt)

    def classify_recovery(self, entries: Iterable[Entry], existing_groups: Iterable[str]) -> str:
        system_message, prompt = build_recovery_prompt(entries, existing_groups)
        return self.complete(RequestKind.RECOVERY, system_message, prompt)

    def resolve_conflicts(self, conflicts: Iterable[Conflict]) -> str:
        system_message, prompt = build_conflict_prompt(conflicts)
        return self.complete(RequestKind.CONFLICT, system_message, prompt)
