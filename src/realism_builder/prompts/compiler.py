from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from realism_builder.prompts.framing import Framing, classify, constraints_for


DEFAULT_INSTRUCTION = "Transplant the source identity into the target scene naturally."

TARGET_LABEL = '"TARGET_SCENE_CONTEXT"'
BACKGROUND_LABEL = '"BACKGROUND_IMAGE"'


class ClothingSource(str, Enum):
    TARGET = "target"
    SOURCE = "source"


@dataclass(frozen=True)
class GenerationOptions:
    clothing_source: ClothingSource
    custom_text: str
    render_size: str = "2K"
    source_image_count: int = 1
    has_background: bool = False


def source_label(count: int) -> str:
    if count <= 1:
        return '"SOURCE_IDENTITY_REFERENCE"'
    return f'"SOURCE_IDENTITY_REFERENCE_1" through "SOURCE_IDENTITY_REFERENCE_{count}"'


def compile_prompt(options: GenerationOptions) -> str:
    """
    Build the full persona-transplant instruction for the image model.

    Output is a pure function of `options`; the framing (and therefore which
    body constraints and whether the clothing section appear) is derived from
    the custom text every time.
    """
    count = max(1, options.source_image_count)
    multi = count > 1
    src = source_label(count)
    instruction = options.custom_text if options.custom_text.strip() else DEFAULT_INSTRUCTION
    framing = classify(instruction)

    blocks: list[str] = ["TASK: High-Fidelity Photorealistic Persona Transplantation."]

    goal = f"PRIMARY GOAL: Replace the person in {TARGET_LABEL} with the identity from {src}"
    if options.has_background:
        goal += (
            f", and reconstruct the scene so it takes place in the environment/setting shown in "
            f"{BACKGROUND_LABEL}, adapted to fit the target's pose, camera angle, and foreground context"
        )
    blocks.append(goal + ".")

    if multi:
        blocks.append(
            f"MULTIPLE SOURCE REFERENCES: {count} images of the SAME person have been provided ({src}). "
            "These show the subject from different angles and/or lighting conditions. You MUST cross-reference "
            "ALL of them to build an accurate, comprehensive understanding of the subject's facial geometry, "
            "bone structure, skin texture, and features. More references = higher fidelity. "
            "Do NOT rely on just one; synthesize them all."
        )

    blocks.append(
        "CRITICAL QUALITY STANDARDS: YOU MUST FOLLOW ALL OF THESE. FAILURE ON ANY ONE IS A FAILED OUTPUT:\n"
        + "\n".join(f"{n}. {section}" for n, section in enumerate(_quality_sections(options, framing, src), 1))
    )

    blocks.append("MANDATORY CONSTRAINTS (NON-NEGOTIABLE):\n" + "\n".join(constraints_for(framing)))

    those = "those images" if multi else "that image"
    source_images = "images" if multi else "image"
    blocks.append(
        "REFERENCE SCOPE (READ THIS CAREFULLY):\n"
        f"ONLY use the FACE and IDENTITY from {src}. You MUST IGNORE the body, clothing, pose, and background "
        f"of {those}. DO NOT carry over ANY element from the source {source_images} except the face and identity. "
        "This is CRITICAL."
    )

    blocks.append(f"INSTRUCTIONS: {instruction}")

    if multi:
        lead = f"Cross-reference ALL {count} source identity images to"
    else:
        lead = "Use the source identity to"
    blocks.append(
        f'EXECUTION: Analyze the labels. {lead} transplant the subject into the "TARGET_SCENE". '
        "Match expressions PERFECTLY. The output MUST be a clean photograph with NO overlays, NO labels, "
        f"NO banners, NO watermarks. Render at {options.render_size} resolution."
    )

    return "\n\n".join(blocks)


def _quality_sections(options: GenerationOptions, framing: Framing, src: str) -> list[str]:
    sections = [
        "EXPRESSION MATCHING: You MUST synchronize the facial expression EXACTLY. The final subject MUST "
        "replicate the precise smile, eye-squint, brow-tension, and mouth position of the original person in "
        f"{TARGET_LABEL}. DO NOT use a neutral or static expression from the reference. DO NOT default to a "
        "generic smile. MATCH THE EXACT EXPRESSION.",
        f"SKIN TONE FIDELITY: You MUST STRICTLY preserve the skin color and complexion of {src}. "
        "DO NOT lighten, darken, or shift the skin tone. The output subject MUST have the IDENTICAL skin tone "
        "as the source identity. NO EXCEPTIONS.",
        "NEURAL BLENDING: Seamless integration is MANDATORY. Match skin pores, subsurface scattering (light "
        "through skin), and global illumination of the scene PERFECTLY. ABSOLUTELY NO sharp \"cut-and-paste\" "
        "edges. ABSOLUTELY NO \"Microsoft Paint\" artifacts. If the blending looks artificial, the output is FAILED.",
        "PHOTOREALISM: The result MUST look like a raw, unedited photograph taken by a real camera. Maintain "
        "natural shadows and reflections from the target scene. DO NOT make it look AI-generated, smoothed, "
        "or synthetic.",
    ]

    # A close-up must never mention clothing or body.
    if framing is not Framing.CLOSE_UP:
        if options.clothing_source is ClothingSource.TARGET:
            wear = f"The subject MUST wear the exact clothing, outfit, and accessories seen in the {TARGET_LABEL}."
        else:
            wear = f"The subject MUST wear the clothing and outfit seen in {src}."
        sections.append(f"CLOTHING SPECIFICATION: {wear}")

    if options.has_background:
        sections.append(
            "BACKGROUND REPLACEMENT (CONTEXTUAL COMPOSITING):\n"
            f"   A {BACKGROUND_LABEL} has been provided. Your job is NOT to naively paste the subject onto this "
            "background. You MUST:\n"
            f"   a) ANALYZE the {TARGET_LABEL} first: understand the subject's pose, body position, interaction "
            "with objects (furniture, surfaces, props), camera angle, perspective, and depth of field.\n"
            f"   b) EXTRACT the environment, aesthetic, and setting from {BACKGROUND_LABEL}: the location type, "
            "colors, textures, atmosphere, and ambient lighting. IGNORE any people in it.\n"
            "   c) RECONSTRUCT the scene: Place the subject (with their pose and object interactions from the "
            f"target) into a new environment that matches the VIBE and SETTING of the {BACKGROUND_LABEL}, but is "
            "adapted to be physically plausible given the subject's pose and camera angle. If the subject is "
            "sitting at a table, there must still be a table, but the surrounding environment changes.\n"
            "   d) RE-LIGHT the subject to match the new environment's lighting conditions (color temperature, "
            "direction, intensity, ambient vs directional light ratio).\n"
            "   e) The result must look like the photo was ORIGINALLY TAKEN in the background's environment, "
            "not composited after the fact."
        )
    return sections
