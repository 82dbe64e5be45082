"""Provider-agnostic LLM client for OpenAI, Anthropic and Gemini."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable

from pulse.config import Settings
from pulse.services.usage import UsageRecord

logger = logging.getLogger(__name__)

# Fixed seed for deterministic output (OpenAI only)
DETERMINISTIC_SEED = 42

SUPPORTED_MODELS = {
    "openai": ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo", "o1", "o3-mini"],
    "anthropic": ["claude-opus-4-5", "claude-sonnet-4-5", "claude-haiku-4-5"],
    "gemini": ["gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash-lite"],
}


class LLMError(Exception):
    """Raised when a provider call fails or is not configured."""


class ProviderNotConfiguredError(LLMError):
    """Raised when the API key for a provider is missing."""


@dataclass
class LLMResponse:
    """Text returned by a provider plus accounting data."""
    content: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int = 0


def provider_for_model(model: str) -> str:
    """Infer the provider from a model name."""
    name = model.lower()
    if name.startswith("claude"):
        return "anthropic"
    if name.startswith("gemini"):
        return "gemini"
    if name.startswith(("gpt-", "o1", "o3", "o4")):
        return "openai"
    raise ValueError(f"Unknown model: {model}")


def is_supported_model(model: str) -> bool:
    return any(model in models for models in SUPPORTED_MODELS.values())


def parse_json(response: str) -> dict | list:
    """Parse JSON from LLM response, handling code fences."""
    content = response.strip()

    if content.startswith("```"):
        first_newline = content.find("\n")
        if first_newline != -1:
            content = content[first_newline + 1:]
        if content.endswith("```"):
            content = content[:-3].rstrip()

    return json.loads(content)


class LLMClient:
    """Routes completion requests to the provider that serves the model."""

    def __init__(self, settings: Settings, on_usage: Callable[[UsageRecord], None] | None = None):
        self.settings = settings
        self.on_usage = on_usage
        self._openai_client = None
        self._anthropic_client = None
        self._gemini_configured = False

    def available_providers(self) -> dict[str, bool]:
        return {
            "openai": bool(self.settings.openai_api_key),
            "anthropic": bool(self.settings.anthropic_api_key),
            "gemini": bool(self.settings.gemini_api_key),
        }

    def _get_openai_client(self):
        """Lazy load OpenAI client."""
        if not self.settings.openai_api_key:
            raise ProviderNotConfiguredError("OPENAI_API_KEY is not configured")
        if self._openai_client is None:
            from openai import OpenAI
            self._openai_client = OpenAI(api_key=self.settings.openai_api_key)
        return self._openai_client

    def _get_anthropic_client(self):
        """Lazy load Anthropic client."""
        if not self.settings.anthropic_api_key:
            raise ProviderNotConfiguredError("ANTHROPIC_API_KEY is not configured")
        if self._anthropic_client is None:
            from anthropic import Anthropic
            self._anthropic_client = Anthropic(api_key=self.settings.anthropic_api_key)
        return self._anthropic_client

    def _get_gemini_model(self, model: str, system: str | None):
        """Build a Gemini model handle, configuring the SDK once."""
        if not self.settings.gemini_api_key:
            raise ProviderNotConfiguredError("GEMINI_API_KEY is not configured")
        import google.generativeai as genai
        if not self._gemini_configured:
            genai.configure(api_key=self.settings.gemini_api_key)
            self._gemini_configured = True
        return genai.GenerativeModel(model_name=model, system_instruction=system or None)

    def _call_openai(
        self, prompt: str, system: str | None, model: str, max_tokens: int, temperature: float, json_mode: bool
    ) -> tuple[str, int, int]:
        client = self._get_openai_client()
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "seed": DETERMINISTIC_SEED,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = client.chat.completions.create(**kwargs)
        usage = response.usage
        return (
            response.choices[0].message.content or "",
            usage.prompt_tokens if usage else 0,
            usage.completion_tokens if usage else 0,
        )

    def _call_anthropic(
        self, prompt: str, system: str | None, model: str, max_tokens: int, temperature: float
    ) -> tuple[str, int, int]:
        client = self._get_anthropic_client()
        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        response = client.messages.create(**kwargs)
        return response.content[0].text, response.usage.input_tokens, response.usage.output_tokens

    def _call_gemini(
        self, prompt: str, system: str | None, model: str, max_tokens: int, temperature: float, json_mode: bool
    ) -> tuple[str, int, int]:
        gemini_model = self._get_gemini_model(model, system)
        generation_config = {"temperature": temperature, "max_output_tokens": max_tokens}
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        response = gemini_model.generate_content(prompt, generation_config=generation_config)
        input_tokens = output_tokens = 0
        if getattr(response, "usage_metadata", None):
            input_tokens = response.usage_metadata.prompt_token_count
            output_tokens = response.usage_metadata.candidates_token_count
        return response.text, input_tokens, output_tokens

    def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0,
        json_mode: bool = False,
        action: str = "completion",
        page_id: str | None = None,
        page_url: str | None = None,
    ) -> LLMResponse:
        """Run one completion and report its usage.

        Raises:
            LLMError: if the provider is not configured or the call fails.
        """
        model = model or self.settings.llm_model
        try:
            provider = provider_for_model(model)
        except ValueError as e:
            raise LLMError(str(e)) from e

        logger.info(f"Calling {provider} {model} for {action}...")
        start = time.monotonic()

        try:
            if provider == "openai":
                content, input_tokens, output_tokens = self._call_openai(
                    prompt, system, model, max_tokens, temperature, json_mode
                )
            elif provider == "anthropic":
                content, input_tokens, output_tokens = self._call_anthropic(
                    prompt, system, model, max_tokens, temperature
                )
            else:
                content, input_tokens, output_tokens = self._call_gemini(
                    prompt, system, model, max_tokens, temperature, json_mode
                )
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            self._record(UsageRecord(
                action=action, provider=provider, model=model, duration_ms=duration_ms,
                success=False, error_message=str(e)[:1000], page_id=page_id, page_url=page_url,
            ))
            if isinstance(e, LLMError):
                raise
            raise LLMError(f"{provider} call failed: {e}") from e

        duration_ms = int((time.monotonic() - start) * 1000)
        self._record(UsageRecord(
            action=action, provider=provider, model=model,
            input_tokens=input_tokens or 0, output_tokens=output_tokens or 0,
            duration_ms=duration_ms, page_id=page_id, page_url=page_url,
        ))

        return LLMResponse(
            content=content,
            provider=provider,
            model=model,
            input_tokens=input_tokens or 0,
            output_tokens=output_tokens or 0,
            duration_ms=duration_ms,
        )

    def _record(self, record: UsageRecord) -> None:
        if self.on_usage:
            self.on_usage(record)
