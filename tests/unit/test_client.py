"""Tests for OpenRouterClient."""

from unittest.mock import MagicMock, patch

import pytest

from openrouter_policy.config.settings import (
    CapabilityConfig,
    HealingConfig,
    OpenRouterConfig,
    Settings,
)
from openrouter_policy.exceptions import CapabilityError
from openrouter_policy.healing import HealingEvent
from openrouter_policy.llm.client import CompletionResult, OpenRouterClient, has_images


def make_settings(**capabilities) -> Settings:
    return Settings(
        _env_file=None,
        openrouter=OpenRouterConfig(
            api_key="sk-or-test",
            site_url="https://example.com",
            site_name="Example",
        ),
        healing=HealingConfig(auto_heal_responses=True, max_heal_attempts=1),
        capabilities=CapabilityConfig(**capabilities),
    )


def make_response(content: str, model: str = "openai/gpt-4o-mini") -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.choices[0].finish_reason = "stop"
    response.usage.prompt_tokens = 12
    response.usage.completion_tokens = 5
    response.model = model
    response.model_dump.return_value = {"id": "gen-1"}
    return response


@pytest.fixture
def openai_client() -> MagicMock:
    """A mock OpenAI SDK client."""
    mock = MagicMock()
    mock.chat.completions.create.return_value = make_response("Hello!")
    return mock


class TestClientSetup:
    """Tests for client construction."""

    def test_defaults_from_settings(self) -> None:
        """Base URL and default model come from settings."""
        client = OpenRouterClient(settings=make_settings())
        assert "openrouter" in client.base_url
        assert client.default_model == "openrouter/auto"

    def test_custom_base_url(self) -> None:
        """Explicit arguments override settings."""
        client = OpenRouterClient(base_url="https://proxy.test/v1", settings=make_settings())
        assert client.base_url == "https://proxy.test/v1"

    def test_sdk_client_gets_attribution_headers(self) -> None:
        """The OpenAI client is built with the OpenRouter attribution headers."""
        with patch("openrouter_policy.llm.client.OpenAI") as mock_openai:
            OpenRouterClient(settings=make_settings())._get_client()

        kwargs = mock_openai.call_args.kwargs
        assert kwargs["api_key"] == "sk-or-test"
        assert kwargs["default_headers"] == {
            "HTTP-Referer": "https://example.com",
            "X-Title": "Example",
        }


class TestComplete:
    """Tests for complete() and execute()."""

    def test_complete_returns_result(self, openai_client) -> None:
        """The provider response is mapped to a CompletionResult."""
        client = OpenRouterClient(settings=make_settings(), client=openai_client)

        result = client.complete([{"role": "user", "content": "Hi"}], model="openai/gpt-4o-mini")

        assert isinstance(result, CompletionResult)
        assert result.content == "Hello!"
        assert result.total_tokens == 17
        assert result.finish_reason == "stop"
        assert result.raw == {"id": "gen-1"}

    def test_openrouter_options_in_extra_body(self, openai_client) -> None:
        """OpenRouter-only options travel in extra_body."""
        client = OpenRouterClient(settings=make_settings(), client=openai_client)

        client.complete(
            [{"role": "user", "content": "Hi"}],
            model="openai/gpt-4o-mini",
            temperature=0.3,
            plugins=[{"id": "web"}],
            provider={"order": ["openai"]},
            transforms=["middle-out"],
        )

        params = openai_client.chat.completions.create.call_args.kwargs
        assert params["temperature"] == 0.3
        assert params["extra_body"] == {
            "plugins": [{"id": "web"}],
            "provider": {"order": ["openai"]},
            "transforms": ["middle-out"],
        }
        assert "plugins" not in params

    def test_default_model_used(self, openai_client) -> None:
        """Without a model the configured default is sent."""
        client = OpenRouterClient(settings=make_settings(), client=openai_client)
        client.complete([{"role": "user", "content": "Hi"}])
        assert openai_client.chat.completions.create.call_args.kwargs["model"] == "openrouter/auto"

    def test_execute_delegates(self, openai_client) -> None:
        """execute() is complete() with a positional model."""
        client = OpenRouterClient(settings=make_settings(), client=openai_client)
        result = client.execute([{"role": "user", "content": "Hi"}], "openai/gpt-4o-mini", max_tokens=10)
        assert result.content == "Hello!"
        assert openai_client.chat.completions.create.call_args.kwargs["max_tokens"] == 10

    def test_empty_choices_raise(self, openai_client) -> None:
        """An empty choices list is an error."""
        openai_client.chat.completions.create.return_value.choices = []
        client = OpenRouterClient(settings=make_settings(), client=openai_client)

        with pytest.raises(ValueError, match="empty choices"):
            client.complete([{"role": "user", "content": "Hi"}], model="openai/gpt-4o-mini")

    def test_tools_checked_against_catalog(self, openai_client, sample_catalog) -> None:
        """Tools on a model without function calling fail in strict mode."""
        client = OpenRouterClient(
            settings=make_settings(strict_mode=True), catalog=sample_catalog, client=openai_client
        )

        with pytest.raises(CapabilityError):
            client.complete(
                [{"role": "user", "content": "Hi"}],
                model="google/gemini-flash-1.5",
                tools=[{"type": "function", "function": {"name": "f"}}],
            )
        openai_client.chat.completions.create.assert_not_called()

    def test_images_checked_against_catalog(self, openai_client, sample_catalog) -> None:
        """Image content on a non-vision model fails in strict mode."""
        client = OpenRouterClient(
            settings=make_settings(strict_mode=True), catalog=sample_catalog, client=openai_client
        )
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "What is this?"},
                    {"type": "image_url", "image_url": {"url": "https://example.com/a.png"}},
                ],
            }
        ]

        assert has_images(messages)
        with pytest.raises(CapabilityError):
            client.complete(messages, model="mistralai/mistral-large")


class TestCallbacks:
    """Tests for callback hooks."""

    def test_request_lifecycle_callbacks(self, openai_client) -> None:
        """before_request and after_response fire around the call."""
        client = OpenRouterClient(settings=make_settings(), client=openai_client)
        before, after = MagicMock(), MagicMock()
        client.on("before_request", before).on("after_response", after)

        client.complete([{"role": "user", "content": "Hi"}], model="openai/gpt-4o-mini")

        assert before.call_args.args[0]["model"] == "openai/gpt-4o-mini"
        assert after.call_args.args[0].content == "Hello!"

    def test_on_error(self, openai_client) -> None:
        """on_error receives provider exceptions, which still propagate."""
        openai_client.chat.completions.create.side_effect = RuntimeError("503")
        client = OpenRouterClient(settings=make_settings(), client=openai_client)
        on_error = MagicMock()
        client.on("on_error", on_error)

        with pytest.raises(RuntimeError):
            client.complete([{"role": "user", "content": "Hi"}], model="openai/gpt-4o-mini")
        assert isinstance(on_error.call_args.args[0], RuntimeError)

    def test_invalid_event(self) -> None:
        """Unknown events are rejected."""
        client = OpenRouterClient(settings=make_settings())
        with pytest.raises(ValueError, match="Invalid event"):
            client.on("on_magic", print)

    def test_clear_callbacks(self, openai_client) -> None:
        """Cleared callbacks no longer fire."""
        client = OpenRouterClient(settings=make_settings(), client=openai_client)
        callback = MagicMock()
        client.on("after_response", callback).clear_callbacks("after_response")

        client.complete([{"role": "user", "content": "Hi"}], model="openai/gpt-4o-mini")

        callback.assert_not_called()

    def test_failing_callback_ignored(self, openai_client) -> None:
        """Callback errors do not fail the request."""
        client = OpenRouterClient(settings=make_settings(), client=openai_client)
        client.on("after_response", MagicMock(side_effect=RuntimeError("boom")))

        result = client.complete([{"role": "user", "content": "Hi"}], model="openai/gpt-4o-mini")
        assert result.content == "Hello!"


class TestStructured:
    """Tests for complete_structured()."""

    SCHEMA = {
        "type": "object",
        "properties": {"answer": {"type": "integer"}},
        "required": ["answer"],
    }

    def test_healing_fires_on_healing(self, openai_client, sample_catalog) -> None:
        """The client heals through itself and reports on_healing."""
        openai_client.chat.completions.create.side_effect = [
            make_response('{"answer": forty-two}'),
            make_response('{"answer": 42}'),
        ]
        client = OpenRouterClient(
            settings=make_settings(), catalog=sample_catalog, client=openai_client
        )
        events: list[HealingEvent] = []
        client.on("on_healing", events.append)

        data = client.complete_structured(
            [{"role": "user", "content": "6 x 7?"}], self.SCHEMA, model="openai/gpt-4o-mini"
        )

        assert data == {"answer": 42}
        assert len(events) == 1 and events[0].healed
        healer_call = openai_client.chat.completions.create.call_args_list[1].kwargs
        assert healer_call["model"] == "openai/gpt-4o-mini"
        assert healer_call["temperature"] == 0.0

    def test_native_request_shape(self, openai_client, sample_catalog) -> None:
        """Structured requests send response_format and the healing plugin."""
        openai_client.chat.completions.create.return_value = make_response('{"answer": 42}')
        client = OpenRouterClient(
            settings=make_settings(), catalog=sample_catalog, client=openai_client
        )

        client.complete_structured(
            [{"role": "user", "content": "6 x 7?"}], self.SCHEMA, model="openai/gpt-4o-mini"
        )

        params = openai_client.chat.completions.create.call_args.kwargs
        assert params["response_format"]["type"] == "json_schema"
        assert params["extra_body"] == {"plugins": [{"id": "response-healing"}]}
