"""Tests for SmartRouter and requirement dicts."""

from unittest.mock import MagicMock

import pytest

from openrouter_policy.config.settings import CapabilityConfig, OpenRouterConfig, Settings
from openrouter_policy.exceptions import (
    AllModelsFailedError,
    CapabilityError,
    ModelSelectionError,
)
from openrouter_policy.llm.capabilities import CapabilityGuard
from openrouter_policy.llm.client import OpenRouterClient
from openrouter_policy.llm.router import SmartRouter, selector_from_requirements

MESSAGES = [{"role": "user", "content": "Hello"}]


class TestSelectorFromRequirements:
    """Tests for selector_from_requirements()."""

    def test_empty(self, sample_catalog) -> None:
        """No requirements gives the default selector."""
        selector = selector_from_requirements(sample_catalog, None)
        assert selector.choose() == "meta-llama/llama-3-8b-instruct:free"

    def test_full_mapping(self, sample_catalog) -> None:
        """Every recognised key is applied."""
        selector = selector_from_requirements(
            sample_catalog,
            {
                "capabilities": ["function_calling"],
                "max_cost": 0.01,
                "max_output_cost": 0.02,
                "min_context_length": 100000,
                "providers": {"require": ["openai", "anthropic"], "avoid": ["anthropic"]},
            },
        )
        req = selector.requirements
        assert req.capabilities == {"function_calling"}
        assert req.max_input_cost == 0.01
        assert req.max_output_cost == 0.02
        assert req.min_context_length == 100000
        assert req.required_providers == {"openai", "anthropic"}
        assert req.avoided_providers == {"anthropic"}
        assert selector.choose() == "openai/gpt-4o-mini"

    def test_provider_list_is_preference(self, sample_catalog) -> None:
        """A plain provider list only sets preferences."""
        selector = selector_from_requirements(sample_catalog, {"providers": ["anthropic"]})
        assert selector.requirements.preferred_providers == ("anthropic",)
        assert selector.requirements.required_providers is None

    def test_single_capability_string(self, sample_catalog) -> None:
        """A lone capability string is accepted."""
        selector = selector_from_requirements(sample_catalog, {"capabilities": "vision"})
        assert selector.requirements.capabilities == {"vision"}


class TestSmartRouter:
    """Tests for SmartRouter."""

    def test_smart_complete_uses_best_model(self, sample_catalog) -> None:
        """The best matching model receives the request."""
        client = MagicMock()
        client.execute.return_value = "ok"
        router = SmartRouter(client, sample_catalog)

        result = router.smart_complete(
            MESSAGES, {"capabilities": ["vision"]}, optimization="cost", temperature=0.1
        )

        assert result == "ok"
        client.execute.assert_called_once_with(MESSAGES, "google/gemini-flash-1.5", temperature=0.1)

    def test_smart_complete_strategy(self, sample_catalog) -> None:
        """The optimization argument selects the ranking strategy."""
        client = MagicMock()
        SmartRouter(client, sample_catalog).smart_complete(MESSAGES, optimization="context")
        assert client.execute.call_args.args[1] == "google/gemini-flash-1.5"

    def test_smart_complete_no_match(self, sample_catalog) -> None:
        """No matching model raises ModelSelectionError."""
        client = MagicMock()
        with pytest.raises(ModelSelectionError):
            SmartRouter(client, sample_catalog).smart_complete(
                MESSAGES, {"capabilities": ["teleportation"]}
            )
        client.execute.assert_not_called()

    def test_fallback_moves_down_the_ranking(self, sample_catalog) -> None:
        """Failures fall through to the next ranked model."""
        client = MagicMock()
        client.execute.side_effect = [RuntimeError("rate limited"), "ok"]
        router = SmartRouter(client, sample_catalog)

        result = router.smart_complete_with_fallback(MESSAGES, {"capabilities": ["vision"]})

        assert result == "ok"
        tried = [c.args[1] for c in client.execute.call_args_list]
        assert tried == ["google/gemini-flash-1.5", "openai/gpt-4o-mini"]

    def test_fallback_all_fail(self, sample_catalog) -> None:
        """max_retries + 1 models are tried before giving up."""
        client = MagicMock()
        client.execute.side_effect = RuntimeError("down")
        router = SmartRouter(client, sample_catalog)

        with pytest.raises(AllModelsFailedError) as exc_info:
            router.smart_complete_with_fallback(MESSAGES, max_retries=2)

        assert client.execute.call_count == 3
        assert [model for model, _ in exc_info.value.errors] == [
            "meta-llama/llama-3-8b-instruct:free",
            "google/gemini-flash-1.5",
            "openai/gpt-4o-mini",
        ]

    def test_fallback_no_match(self, sample_catalog) -> None:
        """No candidates at all is a selection error."""
        with pytest.raises(ModelSelectionError):
            SmartRouter(MagicMock(), sample_catalog).smart_complete_with_fallback(
                MESSAGES, {"capabilities": ["teleportation"]}
            )


class TestSmartRouterCapabilityGuard:
    """Strict capability mode applies before selection."""

    def test_strict_guard_rejects_unsatisfiable(self, sample_catalog) -> None:
        """No model with every capability raises CapabilityError."""
        client = MagicMock()
        guard = CapabilityGuard(sample_catalog, strict_mode=True)
        router = SmartRouter(client, sample_catalog, guard)

        with pytest.raises(CapabilityError):
            router.smart_complete(MESSAGES, {"capabilities": ["vision", "teleportation"]})
        with pytest.raises(CapabilityError):
            router.smart_complete_with_fallback(MESSAGES, {"capabilities": "teleportation"})
        client.execute.assert_not_called()

    def test_strict_guard_allows_satisfiable(self, sample_catalog) -> None:
        """Satisfiable capabilities route normally."""
        client = MagicMock()
        guard = CapabilityGuard(sample_catalog, strict_mode=True)

        SmartRouter(client, sample_catalog, guard).smart_complete(
            MESSAGES, {"capabilities": ["vision", "function_calling"]}
        )

        assert client.execute.call_args.args[1] == "openai/gpt-4o-mini"

    def test_non_strict_guard_leaves_selection_error(self, sample_catalog) -> None:
        """Without strict mode an unmet capability is a selection error."""
        guard = CapabilityGuard(sample_catalog)
        with pytest.raises(ModelSelectionError):
            SmartRouter(MagicMock(), sample_catalog, guard).smart_complete(
                MESSAGES, {"capabilities": ["teleportation"]}
            )

    def test_client_guard_used_by_default(self, sample_catalog) -> None:
        """A router over an OpenRouterClient inherits its strict guard."""
        settings = Settings(
            _env_file=None,
            openrouter=OpenRouterConfig(api_key="sk-or-test"),
            capabilities=CapabilityConfig(strict_mode=True),
        )
        client = OpenRouterClient(settings=settings, catalog=sample_catalog, client=MagicMock())

        with pytest.raises(CapabilityError):
            SmartRouter(client, sample_catalog).select({"capabilities": ["teleportation"]})
