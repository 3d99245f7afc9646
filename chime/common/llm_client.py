"""
Generation collaborator for Chime.

Thin provider-agnostic wrapper the responder calls with a rule's prompt
template. Anthropic and OpenAI SDKs are imported lazily so the engine runs
without either installed.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import LLMConfig
from .errors import GenerationError

logger = logging.getLogger("chime.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        api_key: Optional[str] = None,
        max_tokens: int = 800,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self.max_tokens = max_tokens
        self._client = None

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        if self.provider == "anthropic":
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        try:
            from openai import OpenAI

            self._client = OpenAI(api_key=api_key)
        except ImportError:
            logger.warning("openai package not installed")
        except Exception as e:
            logger.warning("Failed to initialize OpenAI client: %s", e)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        if config.provider == "openai":
            return cls("openai", config.openai_model, config.openai_api_key, config.max_tokens)
        return cls(config.provider, config.anthropic_model, config.anthropic_api_key, config.max_tokens)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: float = 30.0,
    ) -> str:
        """
        Generate text for a prompt.

        Raises:
            GenerationError: client unavailable or the provider call failed
        """
        if not self.is_available:
            raise GenerationError("LLM client is not available")

        max_tokens = max_tokens or self.max_tokens
        try:
            if self.provider == "anthropic":
                kwargs = {}
                if system:
                    kwargs["system"] = system
                response = self._client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    messages=[{"role": "user", "content": prompt}],
                    timeout=timeout,
                    **kwargs,
                )
                return response.content[0].text.strip()

            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
            )
            return (response.choices[0].message.content or "").strip()
        except Exception as e:
            raise GenerationError(f"{self.provider} generation failed: {e}") from e
