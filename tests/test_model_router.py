"""Unit tests for `ModelRouter` provider resolution and the model catalog."""

from __future__ import annotations

from typing import Dict

import pytest

from src.renderme.services.model_router import CHAT_MODELS, ModelRouter, ProviderSelection


def _with_env(values: Dict[str, str]) -> ModelRouter:
    """Router over an explicit environment so host credentials never leak in."""

    return ModelRouter(env=dict(values))


def test_resolves_deepseek_chat():
    router = _with_env({"DEEPSEEK_API_KEY": "sk-ds"})
    selection = router.resolve("deepseek/deepseek-chat")
    assert isinstance(selection, ProviderSelection)
    assert selection.name == "deepseek"
    assert selection.model == "deepseek-chat"
    assert selection.reasoning is False
    assert router.api_key(selection) == "sk-ds"
    assert router.base_url(selection) == "https://api.deepseek.com/v1"


def test_thinking_suffix_marks_reasoning_and_is_stripped():
    selection = _with_env({"DEEPSEEK_API_KEY": "k"}).resolve("deepseek/deepseek-chat-thinking")
    assert selection.model == "deepseek-chat"
    assert selection.reasoning is True


def test_reasoner_is_reasoning_model():
    assert ModelRouter.is_reasoning_model("deepseek/deepseek-reasoner")
    assert ModelRouter.is_reasoning_model("xai/grok-reasoning")
    assert not ModelRouter.is_reasoning_model("openai/gpt-4o-mini")


def test_bare_ids_are_routed_by_name():
    router = _with_env({"OPENAI_API_KEY": "o", "XAI_API_KEY": "x", "DEEPSEEK_API_KEY": "d"})
    assert router.resolve("gpt-4o").name == "openai"
    assert router.resolve("grok-2-latest").name == "xai"
    assert router.resolve("deepseek-reasoner").name == "deepseek"


def test_unknown_model_uses_default():
    router = ModelRouter(env={"OPENAI_API_KEY": "o"}, default_model_id="openai/gpt-4o-mini")
    selection = router.resolve("mystery-model")
    assert selection.name == "openai"
    assert selection.model == "gpt-4o-mini"


def test_missing_key_raises():
    router = _with_env({})
    with pytest.raises(RuntimeError):
        router.resolve("openai/gpt-4o-mini")


def test_local_provider_needs_no_key_and_honours_base_url():
    router = _with_env({"LOCAL_BASE_URL": "http://gpu-box:8000/v1"})
    selection = router.resolve("local/qwen2.5:14b")
    assert selection.requires_api_key is False
    assert router.base_url(selection) == "http://gpu-box:8000/v1"
