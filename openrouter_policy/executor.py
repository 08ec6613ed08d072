"""Completion executor contract consumed by the healing and routing layers."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

Messages = list[dict[str, Any]]


@runtime_checkable
class CompletionExecutor(Protocol):
    """Sends messages to a model and returns the provider response.

    The response is opaque apart from its text content, which
    :func:`extract_content` knows how to pull out. Timeouts and
    cancellation belong to the implementation.
    """

    def execute(self, messages: Messages, model: str, **options: Any) -> Any:
        ...


def extract_content(response: Any) -> str:
    """Return the text content of a provider response.

    Accepts plain strings, objects exposing ``.content`` and raw
    chat-completion dicts (``choices[0].message.content``).
    """
    if response is None:
        return ""
    if isinstance(response, str):
        return response
    if isinstance(response, dict):
        if "content" in response:
            return response["content"] or ""
        choices = response.get("choices") or []
        if choices:
            message = choices[0].get("message") or {}
            return message.get("content") or ""
        return ""
    content = getattr(response, "content", None)
    return content if isinstance(content, str) else ""
