from __future__ import annotations

import re
from enum import Enum


class Framing(str, Enum):
    CLOSE_UP = "close-up"
    MID_SHOT = "mid-shot"
    FULL_BODY = "full-body"
    AUTO = "auto"


# Order matters: the first matching rule wins, so "upper body, standing"
# is full-body even though it also matches mid-shot.
FRAMING_RULES: tuple[tuple[Framing, re.Pattern[str]], ...] = (
    (
        Framing.CLOSE_UP,
        re.compile(r"\b(close.?up|headshot|face\s?shot|portrait|from the neck up|head and shoulders)\b"),
    ),
    (
        Framing.FULL_BODY,
        re.compile(r"\b(full.?body|head.?to.?toe|standing|walking|full.?length)\b"),
    ),
    (
        Framing.MID_SHOT,
        re.compile(r"\b(mid.?shot|waist.?up|upper.?body|torso|half.?body)\b"),
    ),
)


NO_TATTOOS_VISIBLE_SKIN = (
    "- ABSOLUTELY NO TATTOOS on ANY visible skin (face, neck, ears). "
    "If tattoos exist in references, REMOVE THEM COMPLETELY."
)
NO_TATTOOS_ANYWHERE = (
    "- ABSOLUTELY NO TATTOOS: The subject MUST have 100% clear, unmarked skin. "
    "If EITHER source image contains tattoos, you MUST digitally erase ALL of them. ZERO ink allowed."
)
FLAT_CHEST_BASELINE = (
    "- FLAT CHEST: STRICTLY enforce an anatomically flat-chest baseline. "
    "DO NOT add or imply any chest volume. This is NON-NEGOTIABLE."
)

_CONSTRAINTS: dict[Framing, tuple[str, ...]] = {
    Framing.CLOSE_UP: (NO_TATTOOS_VISIBLE_SKIN,),
    Framing.MID_SHOT: (NO_TATTOOS_ANYWHERE, FLAT_CHEST_BASELINE),
    Framing.FULL_BODY: (NO_TATTOOS_ANYWHERE, FLAT_CHEST_BASELINE),
    Framing.AUTO: (NO_TATTOOS_ANYWHERE, FLAT_CHEST_BASELINE),
}


def classify(text: str | None) -> Framing:
    """
    Infer the shot framing from free text. Never raises; unknown text is AUTO.
    """
    lower = (text or "").lower()
    for framing, pattern in FRAMING_RULES:
        if pattern.search(lower):
            return framing
    return Framing.AUTO


def constraints_for(framing: Framing) -> list[str]:
    # Close-ups must not mention the body at all.
    return list(_CONSTRAINTS[framing])
