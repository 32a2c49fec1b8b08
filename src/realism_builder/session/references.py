from __future__ import annotations

import logging

from realism_builder.assembly.labels import AnnotatedImage, ReferenceImage, ReferenceRole, annotate_reference
from realism_builder.providers.base import InlineImage

logger = logging.getLogger(__name__)

# Order the panel images are handed to the models in.
PANEL_ROLES: tuple[ReferenceRole, ...] = (
    ReferenceRole.FACE,
    ReferenceRole.EDIT_TARGET,
    ReferenceRole.INSPIRATION,
    ReferenceRole.BACKGROUND,
)


class ReferencePanel:
    """
    Reference images collected for one session, grouped by role.

    Every image is labelled from its raw upload. Removing an image renumbers
    the rest of its role and labels them again from the raw payloads, so a
    banner is never drawn over an older banner.
    """

    def __init__(self) -> None:
        self._items: dict[ReferenceRole, list[AnnotatedImage]] = {role: [] for role in PANEL_ROLES}

    def add(self, role: ReferenceRole, images: list[InlineImage]) -> list[AnnotatedImage]:
        current = self._slot(role)
        if role.single:
            # Single roles keep only the newest upload.
            raws = images[-1:]
            if raws:
                current = []
        else:
            raws = images
        added: list[AnnotatedImage] = []
        for raw in raws:
            ref = ReferenceImage(image=raw, role=role, index=len(current) + 1)
            annotated = annotate_reference(ref, ref.label())
            current.append(annotated)
            added.append(annotated)
        self._items[role] = current
        logger.info("added %d %s reference(s)", len(added), role.value)
        return added

    def remove(self, role: ReferenceRole, index: int) -> None:
        """Drop the 1-based `index` image of `role`; raises IndexError if absent."""
        current = self._slot(role)
        if index < 1 or index > len(current):
            raise IndexError(f"no {role.value} reference at index {index}")
        remaining = [a.reference.image for i, a in enumerate(current, 1) if i != index]
        self._items[role] = []
        for raw in remaining:
            ref = ReferenceImage(image=raw, role=role, index=len(self._items[role]) + 1)
            self._items[role].append(annotate_reference(ref, ref.label()))

    def clear(self) -> None:
        for role in PANEL_ROLES:
            self._items[role] = []

    def count(self, role: ReferenceRole) -> int:
        return len(self._slot(role))

    def annotated(self) -> list[AnnotatedImage]:
        return [a for role in PANEL_ROLES for a in self._items[role]]

    def images(self) -> list[InlineImage]:
        return [a.image for a in self.annotated()]

    def _slot(self, role: ReferenceRole) -> list[AnnotatedImage]:
        if role not in self._items:
            raise ValueError(f"role '{role.value}' is not a panel role")
        return list(self._items[role])
