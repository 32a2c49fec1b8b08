from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from realism_builder.config import settings
from realism_builder.errors import ImageDecodeError
from realism_builder.providers.base import InlineImage

BANNER_FILL = (22, 163, 74, 230)
BANNER_TEXT_FILL = (255, 255, 255, 255)
MIN_BANNER_PX = 28
MIN_FONT_PX = 12


class ReferenceRole(str, Enum):
    FACE = "face"
    EDIT_TARGET = "edit-target"
    INSPIRATION = "inspiration"
    BACKGROUND = "background"
    SOURCE_IDENTITY = "source-identity"
    TARGET_SCENE = "target-scene"

    @property
    def label_prefix(self) -> str:
        return _LABEL_PREFIXES[self]

    @property
    def single(self) -> bool:
        return self in (ReferenceRole.EDIT_TARGET, ReferenceRole.BACKGROUND, ReferenceRole.TARGET_SCENE)


_LABEL_PREFIXES = {
    ReferenceRole.FACE: "Face",
    ReferenceRole.EDIT_TARGET: "Edit Target",
    ReferenceRole.INSPIRATION: "Inspiration",
    ReferenceRole.BACKGROUND: "Background Image",
    ReferenceRole.SOURCE_IDENTITY: "SOURCE_IDENTITY_REFERENCE",
    ReferenceRole.TARGET_SCENE: "TARGET_SCENE_CONTEXT",
}


@dataclass(frozen=True)
class ReferenceImage:
    image: InlineImage
    role: ReferenceRole
    index: int = 1

    def label(self, total: int = 1) -> str:
        """
        Panel roles read "Face 2"; face-swap identity references use the
        prompt's indexed scheme (SOURCE_IDENTITY_REFERENCE_2) only when there
        is more than one of them.
        """
        prefix = self.role.label_prefix
        if self.role is ReferenceRole.SOURCE_IDENTITY:
            return prefix if total <= 1 else f"{prefix}_{self.index}"
        if self.role.single:
            return prefix
        return f"{prefix} {self.index}"


@dataclass(frozen=True)
class AnnotatedImage:
    reference: ReferenceImage
    label: str
    image: InlineImage


def annotate(data: bytes, label: str, *, quality: int | None = None) -> bytes:
    """
    Burn a role label into the bottom of an image and return it as JPEG.

    The banner spans the full width, its height scales with the image (with a
    floor so small images stay legible) and the label is centered in bold
    white. Always pass the raw upload, never an already-labelled image.
    """
    try:
        src = Image.open(BytesIO(data))
        src.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError(f"could not decode image for label '{label}'") from exc

    base = src.convert("RGBA")
    w, h = base.size
    banner_h = max(MIN_BANNER_PX, int(round(h * 0.06)))
    y0 = max(0, h - banner_h)

    overlay = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    ImageDraw.Draw(overlay).rectangle([(0, y0), (w, h)], fill=BANNER_FILL)
    out = Image.alpha_composite(base, overlay)

    draw = ImageDraw.Draw(out)
    font = _load_bold_font(max(MIN_FONT_PX, int(banner_h * 0.55)))
    draw.text((w / 2, h - banner_h / 2), label, font=font, fill=BANNER_TEXT_FILL, anchor="mm")

    buf = BytesIO()
    out.convert("RGB").save(buf, format="JPEG", quality=settings.label_jpeg_quality if quality is None else quality)
    return buf.getvalue()


def annotate_reference(reference: ReferenceImage, label: str) -> AnnotatedImage:
    data = annotate(reference.image.data, label)
    return AnnotatedImage(reference=reference, label=label, image=InlineImage(data=data, mime_type="image/jpeg"))


def _load_bold_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """
    Prefer a bold TTF (bundled or system). The default font is the last resort.
    """
    candidates: list[str] = [
        "assets/fonts/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
        "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
        "/Library/Fonts/Arial Bold.ttf",
        "C:\\Windows\\Fonts\\arialbd.ttf",
    ]
    for c in candidates:
        p = Path(c)
        if p.exists():
            try:
                return ImageFont.truetype(str(p), size=size)
            except OSError:
                continue
    return ImageFont.load_default(size=size)
