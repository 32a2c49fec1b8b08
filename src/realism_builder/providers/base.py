from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


@dataclass(frozen=True)
class InlineImage:
    data: bytes
    mime_type: str = "image/jpeg"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationMessage:
    role: MessageRole
    text: str
    images: tuple[InlineImage, ...] = field(default_factory=tuple)
    failed: bool = False

    def __post_init__(self) -> None:
        if self.failed and self.role is not MessageRole.ASSISTANT:
            raise ValueError("only assistant messages can be marked as failed")
        if self.failed and not self.text.strip():
            raise ValueError("failed messages must describe the failure")


class ChatProvider(Protocol):
    name: str

    async def chat(
        self,
        messages: list[ConversationMessage],
        panel_images: list[InlineImage],
    ) -> str: ...


class ImageProvider(Protocol):
    name: str

    async def generate_image(
        self,
        prompt: str,
        images: list[InlineImage],
    ) -> Any: ...
