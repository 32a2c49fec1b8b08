from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from realism_builder.config import settings
from realism_builder.errors import EmptyMessageError, SessionBusyError, user_message
from realism_builder.prompts.directive import Directive, extract_directive
from realism_builder.providers.base import ChatProvider, ConversationMessage, InlineImage, MessageRole
from realism_builder.providers.retry import with_retry
from realism_builder.session.references import ReferencePanel

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = "No response, try rephrasing or retry"


class ChatSession:
    """
    Linear conversation with the prompt-engineer model.

    The session is either idle or awaiting a response (`busy`). History is
    append-only; the one exception is `retry`, which drops the trailing run
    of failed assistant messages before resending.
    """

    def __init__(
        self,
        provider: ChatProvider,
        panel: ReferencePanel | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.panel = panel or ReferencePanel()
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_delay = settings.retry_base_delay_s if retry_delay is None else retry_delay
        # Upper bound for one turn, retries included.
        self.timeout = settings.request_timeout_s if timeout is None else timeout
        self._sleep = sleep
        self.messages: list[ConversationMessage] = []
        self._pending: list[InlineImage] = []
        self.busy = False

    @property
    def state(self) -> str:
        return "awaiting-response" if self.busy else "idle"

    @property
    def pending_images(self) -> tuple[InlineImage, ...]:
        return tuple(self._pending)

    def add_pending_image(self, image: InlineImage) -> None:
        self._pending.append(image)

    def remove_pending_image(self, index: int) -> None:
        del self._pending[index]

    async def submit(self, text: str = "") -> ConversationMessage:
        """
        Append a user turn built from `text` and the pending images, then
        wait for the assistant. Returns the assistant message that was
        appended (which may be a failure).
        """
        if self.busy:
            raise SessionBusyError("a chat response is already pending")
        text = (text or "").strip()
        if not text and not self._pending:
            raise EmptyMessageError("message needs text or at least one image")

        self.messages.append(ConversationMessage(role=MessageRole.USER, text=text, images=tuple(self._pending)))
        self._pending = []
        return await self._send()

    async def retry(self) -> ConversationMessage:
        """Drop the trailing failed replies and resend the conversation."""
        if self.busy:
            raise SessionBusyError("a chat response is already pending")
        if not self.messages or not self.messages[-1].failed:
            raise EmptyMessageError("nothing to retry, the last reply did not fail")
        while self.messages and self.messages[-1].failed:
            self.messages.pop()
        if not self.messages:
            raise EmptyMessageError("nothing to retry")
        return await self._send()

    def reset(self) -> None:
        if self.busy:
            raise SessionBusyError("cannot start a new chat while a response is pending")
        self.messages = []
        self._pending = []

    def chat_images(self) -> list[InlineImage]:
        return [img for m in self.messages if m.role is MessageRole.USER for img in m.images]

    def latest_directive(self) -> Directive | None:
        for m in reversed(self.messages):
            if m.role is not MessageRole.ASSISTANT or m.failed:
                continue
            directive = extract_directive(m.text)
            if directive is not None:
                return directive
        return None

    async def _send(self) -> ConversationMessage:
        self.busy = True
        try:
            history = list(self.messages)
            panel_images = self.panel.images()
            try:
                reply = await asyncio.wait_for(
                    with_retry(
                        lambda: self.provider.chat(history, panel_images),
                        self.max_retries,
                        base_delay=self.retry_delay,
                        sleep=self._sleep,
                    ),
                    timeout=self.timeout,
                )
            except Exception as exc:
                logger.warning("chat call failed: %s", exc)
                message = ConversationMessage(role=MessageRole.ASSISTANT, text=user_message(exc), failed=True)
            else:
                if reply and reply.strip():
                    message = ConversationMessage(role=MessageRole.ASSISTANT, text=reply)
                else:
                    message = ConversationMessage(role=MessageRole.ASSISTANT, text=NO_RESPONSE_MESSAGE, failed=True)
            self.messages.append(message)
            return message
        finally:
            self.busy = False
