from __future__ import annotations

import re
from dataclasses import dataclass

# Only the first ```prompt fence counts; anything after it (including a
# second fence) stays in `after`.
DIRECTIVE_PATTERN = re.compile(r"```prompt\s*\n(.*?)```", re.DOTALL)


@dataclass(frozen=True)
class Directive:
    before: str
    prompt: str
    after: str


def extract_directive(text: str) -> Directive | None:
    match = DIRECTIVE_PATTERN.search(text or "")
    if match is None:
        return None
    return Directive(
        before=text[: match.start()].strip(),
        prompt=match.group(1).strip(),
        after=text[match.end() :].strip(),
    )
