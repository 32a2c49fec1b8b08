from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Union

from realism_builder.assembly.labels import ReferenceImage, ReferenceRole, annotate_reference
from realism_builder.config import settings
from realism_builder.errors import SessionBusyError, status_code_of, user_message
from realism_builder.prompts.compiler import ClothingSource, GenerationOptions, compile_prompt
from realism_builder.providers.base import ImageProvider, InlineImage
from realism_builder.providers.retry import with_retry

logger = logging.getLogger(__name__)

NO_CANDIDATES_MESSAGE = "No response from model"
TEXT_ONLY_MESSAGE = "No image generated, model returned text only"
BACKGROUND_IMAGE_LABEL = "BACKGROUND_IMAGE"


class BlockReason(str, Enum):
    SAFETY = "safety"
    RECITATION = "recitation"


_BLOCK_MESSAGES = {
    BlockReason.SAFETY: "Blocked by safety filter, try rephrasing your prompt",
    BlockReason.RECITATION: "Blocked, content too similar to existing work",
}

# Finish reason names the SDK uses for each kind of block, text and image models alike.
_BLOCKING_FINISH_REASONS = {
    "SAFETY": BlockReason.SAFETY,
    "IMAGE_SAFETY": BlockReason.SAFETY,
    "PROHIBITED_CONTENT": BlockReason.SAFETY,
    "IMAGE_PROHIBITED_CONTENT": BlockReason.SAFETY,
    "RECITATION": BlockReason.RECITATION,
    "IMAGE_RECITATION": BlockReason.RECITATION,
}


@dataclass(frozen=True)
class ImageOutcome:
    kind: ClassVar[str] = "image"
    image: InlineImage


@dataclass(frozen=True)
class BlockedOutcome:
    kind: ClassVar[str] = "blocked"
    reason: BlockReason

    @property
    def message(self) -> str:
        return _BLOCK_MESSAGES[self.reason]


@dataclass(frozen=True)
class FailedOutcome:
    kind: ClassVar[str] = "failed"
    message: str


@dataclass(frozen=True)
class ErrorOutcome:
    kind: ClassVar[str] = "error"
    message: str
    status_code: int = 500


GenerationOutcome = Union[ImageOutcome, BlockedOutcome, FailedOutcome, ErrorOutcome]


def classify_response(resp: Any) -> GenerationOutcome:
    """
    Map a generate_content response onto an outcome. Order matters:
    missing candidates, then safety/recitation blocks (even when the
    candidate also carries parts), then the first image part, then text.
    Only the first candidate is inspected.
    """
    candidates = getattr(resp, "candidates", None) or []
    if not candidates:
        return FailedOutcome(NO_CANDIDATES_MESSAGE)

    cand = candidates[0]
    reason = _finish_reason_name(getattr(cand, "finish_reason", None))
    block = _BLOCKING_FINISH_REASONS.get(reason)
    if block is not None:
        return BlockedOutcome(block)

    content = getattr(cand, "content", None)
    parts = getattr(content, "parts", None) or []
    for part in parts:
        inline = getattr(part, "inline_data", None)
        if not inline:
            continue
        data = getattr(inline, "data", None)
        mime = getattr(inline, "mime_type", None) or ""
        if not data or (mime and not mime.startswith("image/")):
            continue
        return ImageOutcome(InlineImage(data=data, mime_type=mime or "image/png"))

    texts = [t for t in (getattr(p, "text", None) for p in parts) if t]
    return FailedOutcome("\n".join(texts) or TEXT_ONLY_MESSAGE)


def _finish_reason_name(reason: Any) -> str:
    # SDK enums expose .name; plain strings may look like "FinishReason.SAFETY".
    if reason is None:
        return ""
    name = getattr(reason, "name", None)
    if isinstance(name, str):
        return name.upper()
    return str(reason).rsplit(".", 1)[-1].upper()


async def generate(
    provider: ImageProvider,
    instruction: str,
    images: list[InlineImage],
    max_retries: int | None = None,
    retry_delay: float | None = None,
    timeout: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> GenerationOutcome:
    """
    Run one image generation. Never raises for upstream problems: every
    failure comes back as an outcome carrying a user-facing message.

    `timeout` bounds the whole call including retries; running past it is
    reported like any other unclassified failure.
    """
    try:
        resp = await asyncio.wait_for(
            with_retry(
                lambda: provider.generate_image(instruction, list(images)),
                settings.max_retries if max_retries is None else max_retries,
                base_delay=settings.retry_base_delay_s if retry_delay is None else retry_delay,
                sleep=sleep,
            ),
            timeout=settings.request_timeout_s if timeout is None else timeout,
        )
    except Exception as exc:
        logger.warning("generation call failed: %s", exc)
        return ErrorOutcome(message=user_message(exc), status_code=status_code_of(exc) or 500)

    outcome = classify_response(resp)
    if not isinstance(outcome, ImageOutcome):
        logger.info("generation finished without an image (%s)", outcome.kind)
    return outcome


@dataclass(frozen=True)
class HistoryItem:
    image: InlineImage
    prompt: str
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class GenerationFlow:
    """
    Gate for one kind of generation call within a session. Only one call may
    be outstanding; successful images are kept in `history` for the life of
    the process.
    """

    def __init__(
        self,
        provider: ImageProvider,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self.busy = False
        self.history: list[HistoryItem] = []

    async def run(self, instruction: str, images: list[InlineImage]) -> GenerationOutcome:
        if self.busy:
            raise SessionBusyError("a generation is already running")
        self.busy = True
        try:
            outcome = await generate(
                self.provider,
                instruction,
                images,
                max_retries=self.max_retries,
                retry_delay=self.retry_delay,
                sleep=self._sleep,
            )
        finally:
            self.busy = False
        if isinstance(outcome, ImageOutcome):
            self.history.append(HistoryItem(image=outcome.image, prompt=instruction))
        return outcome


def build_faceswap_request(
    sources: list[InlineImage],
    target: InlineImage,
    background: InlineImage | None = None,
    clothing_source: ClothingSource = ClothingSource.TARGET,
    custom_text: str = "",
    render_size: str | None = None,
) -> tuple[str, list[InlineImage]]:
    """
    Label the identity, target and optional background images the way the
    compiled prompt refers to them and compile that prompt.
    """
    if not sources:
        raise ValueError("at least one source identity image is required")

    images: list[InlineImage] = []
    for i, raw in enumerate(sources, 1):
        ref = ReferenceImage(image=raw, role=ReferenceRole.SOURCE_IDENTITY, index=i)
        images.append(annotate_reference(ref, ref.label(total=len(sources))).image)

    target_ref = ReferenceImage(image=target, role=ReferenceRole.TARGET_SCENE)
    images.append(annotate_reference(target_ref, target_ref.label()).image)

    if background is not None:
        bg_ref = ReferenceImage(image=background, role=ReferenceRole.BACKGROUND)
        images.append(annotate_reference(bg_ref, BACKGROUND_IMAGE_LABEL).image)

    prompt = compile_prompt(
        GenerationOptions(
            clothing_source=clothing_source,
            custom_text=custom_text,
            render_size=render_size or settings.image_size,
            source_image_count=len(sources),
            has_background=background is not None,
        )
    )
    return prompt, images
