"""Routing helpers for mapping a chat model id onto a provider.

The router does not couple directly to concrete SDK clients; instead it
selects a provider configuration that the model client uses to instantiate
the LLM. This keeps the selection policy unit-testable and avoids importing
heavyweight SDKs in the hot path when they are not required.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional


_THINKING_SUFFIX = re.compile(r"-thinking$")

CHAT_MODELS = (
    "deepseek/deepseek-chat",
    "deepseek/deepseek-chat-thinking",
    "deepseek/deepseek-reasoner",
    "openai/gpt-4o-mini",
    "xai/grok-2-latest",
)


@dataclass(frozen=True)
class ProviderSelection:
    """Returned details about the provider that should handle a model id."""

    name: str
    model: str
    api_key_env: Optional[str]
    base_url_env: Optional[str] = None
    default_base_url: Optional[str] = None
    requires_api_key: bool = True
    reasoning: bool = False


class ModelRouter:
    """Prefix-based router from ``provider/model`` ids to provider settings."""

    PROVIDER_CONFIG: Dict[str, Dict[str, Optional[str] | bool]] = {
        "deepseek": {
            "api_key_env": "DEEPSEEK_API_KEY",
            "base_url_env": "DEEPSEEK_BASE_URL",
            "default_model": "deepseek-chat",
            "default_base_url": "https://api.deepseek.com/v1",
        },
        "openai": {
            "api_key_env": "OPENAI_API_KEY",
            "base_url_env": "OPENAI_BASE_URL",
            "default_model": "gpt-4o-mini",
            "default_base_url": "https://api.openai.com/v1",
        },
        "xai": {
            "api_key_env": "XAI_API_KEY",
            "base_url_env": "XAI_BASE_URL",
            "default_model": "grok-2-latest",
            "default_base_url": "https://api.x.ai/v1",
        },
        "local": {
            "api_key_env": "LOCAL_API_KEY",
            "base_url_env": "LOCAL_BASE_URL",
            "default_model": "qwen2.5:14b",
            "default_base_url": "http://127.0.0.1:11434/v1",
            "requires_api_key": False,
        },
    }

    def __init__(self, env: Optional[Mapping[str, str]] = None, default_model_id: str = "deepseek/deepseek-chat") -> None:
        self._env = env if env is not None else os.environ
        self._default_model_id = default_model_id

    # ------------------------------------------------------------------
    # Provider resolution helpers
    # ------------------------------------------------------------------
    @staticmethod
    def is_reasoning_model(model_id: str) -> bool:
        lowered = (model_id or "").lower()
        return "reasoning" in lowered or lowered.endswith("-thinking") or lowered.endswith("-reasoner")

    def _split(self, model_id: str) -> tuple[str, str]:
        raw = (model_id or "").strip()
        if "/" in raw:
            prefix, _, rest = raw.partition("/")
            prefix = prefix.lower()
            if prefix in self.PROVIDER_CONFIG and rest:
                return prefix, rest
        if "gpt" in raw.lower():
            return "openai", raw
        if raw.lower().startswith("deepseek"):
            return "deepseek", raw
        if raw.lower().startswith("grok"):
            return "xai", raw
        if raw and raw != self._default_model_id:
            return self._split(self._default_model_id)
        return "deepseek", "deepseek-chat"

    def provider_available(self, name: str) -> bool:
        cfg = self.PROVIDER_CONFIG.get(name)
        if cfg is None:
            return False
        if not cfg.get("requires_api_key", True):
            return True
        return bool(self._env.get(str(cfg.get("api_key_env"))))

    def api_key(self, selection: ProviderSelection) -> Optional[str]:
        if not selection.api_key_env:
            return None
        return self._env.get(selection.api_key_env)

    def base_url(self, selection: ProviderSelection) -> Optional[str]:
        if selection.base_url_env:
            return self._env.get(selection.base_url_env) or selection.default_base_url
        return selection.default_base_url

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def resolve(self, model_id: str) -> ProviderSelection:
        """Return the provider selection for ``model_id``.

        Raises
        ------
        RuntimeError
            If the provider requires an API key that is not configured.
        """

        provider, model = self._split(model_id)
        reasoning = self.is_reasoning_model(model)
        model = _THINKING_SUFFIX.sub("", model)
        cfg = self.PROVIDER_CONFIG[provider]
        selection = ProviderSelection(
            name=provider,
            model=model or str(cfg.get("default_model") or ""),
            api_key_env=cfg.get("api_key_env"),  # type: ignore[arg-type]
            base_url_env=cfg.get("base_url_env"),  # type: ignore[arg-type]
            default_base_url=cfg.get("default_base_url"),  # type: ignore[arg-type]
            requires_api_key=bool(cfg.get("requires_api_key", True)),
            reasoning=reasoning,
        )
        if selection.requires_api_key and not self.api_key(selection):
            raise RuntimeError(f"LLM provider '{provider}' not configured")
        return selection

    def catalog(self) -> List[Dict[str, object]]:
        out: List[Dict[str, object]] = []
        for model_id in CHAT_MODELS:
            provider, _ = self._split(model_id)
            out.append(
                {
                    "id": model_id,
                    "provider": provider,
                    "reasoning": self.is_reasoning_model(model_id),
                    "available": self.provider_available(provider),
                }
            )
        return out
