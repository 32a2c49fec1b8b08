"""Shared fixtures: synthetic images, a scripted model provider and fake responses."""

from __future__ import annotations

from io import BytesIO
from types import SimpleNamespace
from typing import Any, Callable

import pytest
from PIL import Image

from realism_builder.providers.base import ConversationMessage, InlineImage


def _image_bytes(size: tuple[int, int] = (120, 200), color: tuple[int, ...] = (40, 80, 160), fmt: str = "PNG") -> bytes:
    mode = "RGBA" if len(color) == 4 else "RGB"
    buf = BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


class ScriptedProvider:
    """
    Stands in for GeminiProvider. Each call pops the next scripted result;
    exceptions are raised, anything else is returned.
    """

    name = "scripted"

    def __init__(self, chat_results: list[Any] | None = None, image_results: list[Any] | None = None) -> None:
        self.chat_results = list(chat_results or [])
        self.image_results = list(image_results or [])
        self.chat_calls: list[tuple[list[ConversationMessage], list[InlineImage]]] = []
        self.image_calls: list[tuple[str, list[InlineImage]]] = []

    async def chat(self, messages: list[ConversationMessage], panel_images: list[InlineImage]) -> str:
        self.chat_calls.append((list(messages), list(panel_images)))
        return self._next(self.chat_results)

    async def generate_image(self, prompt: str, images: list[InlineImage]) -> Any:
        self.image_calls.append((prompt, list(images)))
        return self._next(self.image_results)

    @staticmethod
    def _next(results: list[Any]) -> Any:
        result = results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def make_image_bytes() -> Callable[..., bytes]:
    return _image_bytes


@pytest.fixture
def raw_image() -> InlineImage:
    return InlineImage(data=_image_bytes(), mime_type="image/png")


@pytest.fixture
def provider_factory() -> type[ScriptedProvider]:
    return ScriptedProvider


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], Any]:
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


def image_part(data: bytes = b"\x89PNG-fake", mime_type: str = "image/png") -> SimpleNamespace:
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)


def text_part(text: str) -> SimpleNamespace:
    return SimpleNamespace(inline_data=None, text=text)


def response(*parts: SimpleNamespace, finish_reason: Any = "STOP") -> SimpleNamespace:
    candidate = SimpleNamespace(finish_reason=finish_reason, content=SimpleNamespace(parts=list(parts)))
    return SimpleNamespace(candidates=[candidate])


@pytest.fixture
def fake_response() -> SimpleNamespace:
    """Builders for generate_content-shaped responses."""
    return SimpleNamespace(image_part=image_part, text_part=text_part, response=response)
