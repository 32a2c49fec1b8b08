from __future__ import annotations

import logging
from typing import Any

from realism_builder.config import settings
from realism_builder.prompts.system import PROMPT_ENGINEER_SYSTEM
from realism_builder.providers.base import ConversationMessage, InlineImage, MessageRole

logger = logging.getLogger(__name__)

PANEL_LEAD_IN = "These are the reference images from the panel:"


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str) -> None:
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore

        self._genai = genai
        self.client = genai.Client(api_key=api_key)

    async def chat(
        self,
        messages: list[ConversationMessage],
        panel_images: list[InlineImage],
    ) -> str:
        """
        One conversational turn: the whole history goes up every time, with
        the labelled panel images prepended to the first message.
        """
        from google.genai import types  # type: ignore

        contents = _build_chat_contents(types, messages, panel_images)
        resp = await self.client.aio.models.generate_content(
            model=settings.gemini_chat_model,
            contents=contents,
            config=types.GenerateContentConfig(system_instruction=PROMPT_ENGINEER_SYSTEM),
        )
        text: str = getattr(resp, "text", None) or ""
        logger.info("chat reply from %s (%d chars)", settings.gemini_chat_model, len(text))
        return text

    async def generate_image(
        self,
        prompt: str,
        images: list[InlineImage],
    ) -> Any:
        """
        Single-turn image request. Returns the raw SDK response; shape checks
        happen in session.generation.classify_response.
        """
        from google.genai import types  # type: ignore

        parts: list[Any] = [types.Part.from_bytes(data=img.data, mime_type=img.mime_type) for img in images]
        parts.append(types.Part.from_text(text=prompt))

        resp = await self.client.aio.models.generate_content(
            model=settings.gemini_image_model,
            contents=[types.Content(role="user", parts=parts)],
            config=types.GenerateContentConfig(
                response_modalities=["image", "text"],
                image_config=types.ImageConfig(image_size=settings.image_size),
            ),
        )
        logger.info(
            "image response from %s (%d reference images, %d candidates)",
            settings.gemini_image_model,
            len(images),
            len(getattr(resp, "candidates", None) or []),
        )
        return resp


def _build_chat_contents(
    types: Any,
    messages: list[ConversationMessage],
    panel_images: list[InlineImage],
) -> list[Any]:
    contents: list[Any] = []
    for i, m in enumerate(messages):
        parts: list[Any] = []
        if i == 0 and panel_images:
            parts.append(types.Part.from_text(text=PANEL_LEAD_IN))
            for img in panel_images:
                parts.append(types.Part.from_bytes(data=img.data, mime_type=img.mime_type))
        for img in m.images:
            parts.append(types.Part.from_bytes(data=img.data, mime_type=img.mime_type))
        if m.text:
            parts.append(types.Part.from_text(text=m.text))
        role = "user" if m.role is MessageRole.USER else "model"
        contents.append(types.Content(role=role, parts=parts))
    return contents
