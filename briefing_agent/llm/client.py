from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from ..core.config import env_bool, env_float, env_str, use_llm
from ..core.errors import CollaboratorError
from .json_parser import parse_json_object

logger = logging.getLogger(__name__)

PROMPTS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts")

ChatMessage = Dict[str, str]


@dataclass
class CompletionResult:
    text: str
    usage: Dict[str, Any] = field(default_factory=dict)


# -------------------------
# Client
# -------------------------
class LLMClient:
    """
    Single entry point for LLM calls.

    - USE_LLM=0 => never calls external model, returns canned stub outputs
    - USE_LLM=1 => calls endpoint (openai-compatible or custom)

    Supported gateway patterns:
      - OpenAI-compatible chat completions (/v1/chat/completions)
      - Custom JSON endpoint: {"messages": [...]} in, {"text"|"output"|"choices"} out

    Every transport or HTTP failure surfaces as CollaboratorError so callers
    only need one except clause.
    """

    def __init__(self, prompts_dir: str = PROMPTS_DIR):
        self.prompts_dir = prompts_dir

        # Endpoint mode:
        # - openai: OpenAI-compatible chat completions
        # - custom: simple JSON endpoint
        self.mode = env_str("LLM_MODE", "openai").lower()
        self.timeout_sec = env_float("LLM_TIMEOUT_SEC", "30")

        # OpenAI-compatible config
        self.base_url = env_str("LLM_BASE_URL", "https://api.openai.com/v1").rstrip("/")
        self.api_key = env_str("LLM_API_KEY", "") or env_str("OPENAI_API_KEY", "")
        self.model = env_str("LLM_MODEL", "gpt-4o-mini")

        # SSL verify (enterprise cert/proxy)
        self.verify_ssl = env_bool("LLM_VERIFY_SSL", "1")

        # Custom endpoint config
        self.endpoint = env_str("LLM_ENDPOINT", "")
        self.header_name = env_str("LLM_HEADER_NAME", "Authorization")
        self.header_value = env_str("LLM_HEADER_VALUE", "")

        # Some gateways use max_output_tokens; default to OpenAI field "max_tokens"
        self.token_field = env_str("LLM_TOKEN_FIELD", "max_tokens") or "max_tokens"

    @property
    def use_llm(self) -> bool:
        return use_llm()

    def load_prompt(self, name: str) -> str:
        path = os.path.join(self.prompts_dir, name)
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def render_prompt(self, name: str, variables: Dict[str, Any]) -> str:
        return self.load_prompt(name).format(**variables)

    # -------------------------
    # Public API
    # -------------------------
    def chat(
        self,
        messages: List[ChatMessage],
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 500,
    ) -> CompletionResult:
        """
        messages: OpenAI-style [{"role": "system"|"user"|"assistant", "content": "..."}]
        """
        if not self.use_llm:
            return CompletionResult(text=self._stub_reply(messages))

        return self._call_model(messages, temperature=temperature, max_output_tokens=max_output_tokens)

    def run_json(
        self,
        system: str,
        prompt: str,
        *,
        temperature: float = 0.3,
        max_output_tokens: int = 1000,
    ) -> Dict[str, Any]:
        """
        Returns a dict parsed from model output.
        Raises JSONParseError when the model did not return a JSON object.
        USE_LLM=0 => {} (nothing extracted)
        """
        if not self.use_llm:
            return {}

        result = self._call_model(
            [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        return parse_json_object(result.text or "{}")

    # -------------------------
    # Stubs (demo mode)
    # -------------------------
    def _stub_reply(self, messages: List[ChatMessage]) -> str:
        last_user = ""
        for m in reversed(messages):
            if m.get("role") == "user":
                last_user = (m.get("content") or "").strip()
                break
        if not last_user:
            return "Tell me a bit more so I can help you sharpen this."
        return (
            f'Noted: "{last_user[:200]}".\n\n'
            "Could you make it more specific? Who is affected, what is at stake, "
            "and why does it matter now?"
        )

    # -------------------------
    # Model call (endpoint)
    # -------------------------
    def _call_model(
        self,
        messages: List[ChatMessage],
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> CompletionResult:
        mode = (self.mode or "openai").lower()
        try:
            if mode == "custom":
                return self._call_custom(messages, temperature, max_output_tokens)
            return self._call_openai_compatible(messages, temperature, max_output_tokens)
        except requests.RequestException as e:
            logger.warning("LLM request failed: %s", e)
            raise CollaboratorError(f"LLM request failed: {e}") from e

    def _call_custom(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_output_tokens: int,
    ) -> CompletionResult:
        endpoint = self.endpoint
        if not endpoint:
            raise CollaboratorError("LLM_ENDPOINT is required when LLM_MODE=custom")

        headers = {"Content-Type": "application/json"}
        if self.header_value:
            headers[self.header_name] = self.header_value

        payload: Dict[str, Any] = {
            "messages": messages,
            "model": self.model or None,
            "max_output_tokens": int(max_output_tokens),
            "temperature": float(temperature),
        }

        r = requests.post(
            endpoint,
            json=payload,
            headers=headers,
            timeout=self.timeout_sec,
            verify=self.verify_ssl,
        )
        if not r.ok:
            raise CollaboratorError(f"Custom LLM HTTP {r.status_code}: {r.text[:500]}")

        try:
            data = r.json()
        except ValueError:
            return CompletionResult(text=r.text)

        # Common shapes
        if isinstance(data, dict):
            usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
            if isinstance(data.get("text"), str):
                return CompletionResult(text=data["text"], usage=usage)
            if isinstance(data.get("output"), str):
                return CompletionResult(text=data["output"], usage=usage)
            text = _first_choice_text(data)
            if text is not None:
                return CompletionResult(text=text, usage=usage)

        return CompletionResult(text=r.text)

    def _resolve_openai_url(self) -> str:
        """
        Accepts:
          - LLM_BASE_URL = https://host
          - LLM_BASE_URL = https://host/v1
          - LLM_BASE_URL = https://host/v1/chat/completions
        Returns final url ending with /v1/chat/completions
        """
        base = (self.base_url or "").rstrip("/")
        if not base:
            return ""

        if base.endswith("/v1/chat/completions"):
            return base
        if base.endswith("/v1"):
            return base + "/chat/completions"
        return base + "/v1/chat/completions"

    def _call_openai_compatible(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_output_tokens: int,
    ) -> CompletionResult:
        if not self.api_key:
            raise CollaboratorError("LLM_API_KEY is required when LLM_MODE=openai")
        if not self.model:
            raise CollaboratorError("LLM_MODEL is required when LLM_MODE=openai")

        url = self._resolve_openai_url()
        if not url:
            raise CollaboratorError("Failed to resolve OpenAI-compatible URL from LLM_BASE_URL")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": float(temperature),
        }
        payload[self.token_field] = int(max_output_tokens)

        r = requests.post(
            url,
            json=payload,
            headers=headers,
            timeout=self.timeout_sec,
            verify=self.verify_ssl,
        )

        if not r.ok:
            raise CollaboratorError(f"OpenAI-compatible HTTP {r.status_code}: {r.text[:500]}")

        try:
            data = r.json()
        except ValueError as e:
            raise CollaboratorError("OpenAI-compatible endpoint returned non-JSON body") from e

        text = _first_choice_text(data) if isinstance(data, dict) else None
        if text is None:
            raise CollaboratorError("OpenAI-compatible response has no choices")

        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        return CompletionResult(text=text, usage=usage)


def _first_choice_text(data: Dict[str, Any]) -> Optional[str]:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    ch0 = choices[0]
    if not isinstance(ch0, dict):
        return None
    msg = ch0.get("message")
    if isinstance(msg, dict):
        # content may legitimately be null; caller decides what an empty reply means
        return str(msg.get("content") or "")
    if isinstance(ch0.get("text"), str):
        return ch0["text"]
    return None
