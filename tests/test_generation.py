"""Tests for response classification and the generation flow."""

from __future__ import annotations

import asyncio
from enum import Enum
from io import BytesIO
from types import SimpleNamespace

import pytest
from PIL import Image

from realism_builder.errors import (
    GENERIC_MESSAGE,
    OVERLOADED_MESSAGE,
    RATE_LIMITED_MESSAGE,
    SAFETY_ERROR_MESSAGE,
    SessionBusyError,
    UpstreamError,
)
from realism_builder.prompts.compiler import ClothingSource
from realism_builder.providers.base import InlineImage
from realism_builder.session.generation import (
    NO_CANDIDATES_MESSAGE,
    TEXT_ONLY_MESSAGE,
    BlockedOutcome,
    BlockReason,
    ErrorOutcome,
    FailedOutcome,
    GenerationFlow,
    ImageOutcome,
    build_faceswap_request,
    classify_response,
    generate,
)


class _FinishReason(Enum):
    STOP = "STOP"
    SAFETY = "SAFETY"
    RECITATION = "RECITATION"


class TestClassifyResponse:
    @pytest.mark.parametrize("resp", [SimpleNamespace(candidates=None), SimpleNamespace(candidates=[]), object()])
    def test_no_candidates(self, resp) -> None:
        assert classify_response(resp) == FailedOutcome(NO_CANDIDATES_MESSAGE)

    def test_safety_outranks_image(self, fake_response) -> None:
        resp = fake_response.response(fake_response.image_part(), finish_reason="SAFETY")
        outcome = classify_response(resp)
        assert outcome == BlockedOutcome(BlockReason.SAFETY)
        assert outcome.kind == "blocked"
        assert "safety" in outcome.message.lower()

    @pytest.mark.parametrize(
        ("finish_reason", "expected"),
        [
            ("IMAGE_SAFETY", BlockReason.SAFETY),
            ("PROHIBITED_CONTENT", BlockReason.SAFETY),
            ("IMAGE_PROHIBITED_CONTENT", BlockReason.SAFETY),
            ("FinishReason.IMAGE_SAFETY", BlockReason.SAFETY),
            ("IMAGE_RECITATION", BlockReason.RECITATION),
        ],
    )
    def test_image_model_block_reasons(self, fake_response, finish_reason: str, expected: BlockReason) -> None:
        resp = fake_response.response(fake_response.text_part("cannot"), finish_reason=finish_reason)
        assert classify_response(resp) == BlockedOutcome(expected)

    def test_recitation_with_sdk_style_enum(self, fake_response) -> None:
        resp = fake_response.response(fake_response.text_part("sorry"), finish_reason=_FinishReason.RECITATION)
        assert classify_response(resp) == BlockedOutcome(BlockReason.RECITATION)

    def test_first_image_wins(self, fake_response) -> None:
        resp = fake_response.response(
            fake_response.text_part("Here you go"),
            fake_response.image_part(b"first", "image/png"),
            fake_response.image_part(b"second", "image/jpeg"),
            finish_reason=_FinishReason.STOP,
        )
        assert classify_response(resp) == ImageOutcome(InlineImage(data=b"first", mime_type="image/png"))

    def test_non_image_inline_data_is_skipped(self, fake_response) -> None:
        resp = fake_response.response(
            fake_response.image_part(b"{}", "application/json"),
            fake_response.image_part(b"img", "image/webp"),
        )
        assert classify_response(resp) == ImageOutcome(InlineImage(data=b"img", mime_type="image/webp"))

    def test_text_only_is_diagnostic_failure(self, fake_response) -> None:
        resp = fake_response.response(fake_response.text_part("I can't"), fake_response.text_part("do that"))
        assert classify_response(resp) == FailedOutcome("I can't\ndo that")

    def test_no_parts_is_generic_failure(self, fake_response) -> None:
        assert classify_response(fake_response.response()) == FailedOutcome(TEXT_ONLY_MESSAGE)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_image_outcome(self, provider_factory, fake_sleep, fake_response, raw_image) -> None:
        provider = provider_factory(image_results=[fake_response.response(fake_response.image_part(b"png"))])
        outcome = await generate(provider, "make it", [raw_image], sleep=fake_sleep)
        assert isinstance(outcome, ImageOutcome)
        assert provider.image_calls == [("make it", [raw_image])]

    @pytest.mark.asyncio
    async def test_overload_after_retries(self, provider_factory, fake_sleep, sleeps) -> None:
        provider = provider_factory(image_results=[UpstreamError("busy", 503)] * 3)
        outcome = await generate(provider, "p", [], max_retries=2, retry_delay=2.0, sleep=fake_sleep)
        assert outcome == ErrorOutcome(message=OVERLOADED_MESSAGE, status_code=503)
        assert len(provider.image_calls) == 3
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_rate_limited_is_immediate(self, provider_factory, fake_sleep) -> None:
        provider = provider_factory(image_results=[UpstreamError("quota", 429)])
        outcome = await generate(provider, "p", [], sleep=fake_sleep)
        assert outcome == ErrorOutcome(message=RATE_LIMITED_MESSAGE, status_code=429)
        assert len(provider.image_calls) == 1

    @pytest.mark.asyncio
    async def test_safety_error_message(self, provider_factory, fake_sleep) -> None:
        provider = provider_factory(image_results=[RuntimeError("prompt blocked: SAFETY")] * 3)
        outcome = await generate(provider, "p", [], sleep=fake_sleep)
        assert outcome == ErrorOutcome(message=SAFETY_ERROR_MESSAGE, status_code=500)

    @pytest.mark.asyncio
    async def test_timeout_is_generic_error(self, provider_factory, fake_sleep) -> None:
        class HangingProvider(provider_factory):
            async def generate_image(self, prompt, images):
                await asyncio.sleep(10)

        outcome = await generate(HangingProvider(), "p", [], timeout=0.01, sleep=fake_sleep)
        assert outcome == ErrorOutcome(message=GENERIC_MESSAGE, status_code=500)


class TestGenerationFlow:
    @pytest.mark.asyncio
    async def test_history_records_images_only(self, provider_factory, fake_sleep, fake_response) -> None:
        provider = provider_factory(
            image_results=[
                fake_response.response(fake_response.image_part(b"one")),
                fake_response.response(finish_reason="SAFETY"),
            ]
        )
        flow = GenerationFlow(provider, sleep=fake_sleep)
        await flow.run("first prompt", [])
        await flow.run("second prompt", [])
        assert [h.prompt for h in flow.history] == ["first prompt"]
        assert flow.history[0].image.data == b"one"
        assert not flow.busy

    @pytest.mark.asyncio
    async def test_rejects_concurrent_run(self, provider_factory, fake_response) -> None:
        release = asyncio.Event()

        class SlowProvider(provider_factory):
            async def generate_image(self, prompt, images):
                await release.wait()
                return fake_response.response(fake_response.image_part())

        flow = GenerationFlow(SlowProvider())
        task = asyncio.create_task(flow.run("p", []))
        await asyncio.sleep(0)
        assert flow.busy
        with pytest.raises(SessionBusyError):
            await flow.run("p", [])
        release.set()
        assert isinstance(await task, ImageOutcome)


class TestFaceSwapRequest:
    def test_multi_source_with_background(self, raw_image) -> None:
        prompt, images = build_faceswap_request(
            [raw_image, raw_image],
            raw_image,
            background=raw_image,
            clothing_source=ClothingSource.SOURCE,
            custom_text="walking on the beach",
            render_size="4K",
        )
        assert '"SOURCE_IDENTITY_REFERENCE_1" through "SOURCE_IDENTITY_REFERENCE_2"' in prompt
        assert "BACKGROUND REPLACEMENT" in prompt
        assert prompt.endswith("Render at 4K resolution.")
        assert len(images) == 4
        for img in images:
            assert img.mime_type == "image/jpeg"
            assert Image.open(BytesIO(img.data)).format == "JPEG"

    def test_single_source(self, raw_image) -> None:
        prompt, images = build_faceswap_request([raw_image], raw_image)
        assert "SOURCE_IDENTITY_REFERENCE_1" not in prompt
        assert "BACKGROUND_IMAGE" not in prompt
        assert len(images) == 2

    def test_requires_a_source(self, raw_image) -> None:
        with pytest.raises(ValueError):
            build_faceswap_request([], raw_image)
