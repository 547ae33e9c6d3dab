"""Fixed prompts, model identifiers and size tables used by the handlers."""

from __future__ import annotations

from rendergraph.domain.types import ReferenceType

# --- Engine ---

DEFAULT_ENGINE_PROMPT = "generate an image"
DEFAULT_ENGINE_MODEL = "runware:101@1"
CONTROLNET_MODEL = "runware:29@1"
IP_ADAPTER_MODEL = "runware:105@1"

# Models that take only prompt, dimensions and reference images.
FLUX_KONTEXT_MODELS: frozenset[str] = frozenset({"runware:502@1", "runware:106@1"})

# --- Rerendering ---

KONTEXT_MODEL = "flux-kontext"
KONTEXT_PRO_MODEL = "flux-kontext-pro"

REIMAGINE_PROMPT = "Reimagine this image with creative variations"
RESCENE_PROMPT = (
    "Blend this object into this scene while maintaining all details and realistic lighting"
)
REMIX_PROMPT = "Creatively blend and remix these images into a cohesive composition"
REANGLE_PROMPT = "Change camera angle of this image by {degrees} degrees to {direction} direction"

REFERENCE_PROMPTS: dict[ReferenceType, str] = {
    ReferenceType.STYLE: (
        "Restyle the first image using the visual style of the second image: "
        "match its color palette, lighting, textures and artistic technique "
        "while keeping the subject and layout of the first image"
    ),
    ReferenceType.PRODUCT: (
        "Place the product from the second image into the first image, "
        "replacing the main product so that its shape, branding, labels and "
        "materials stay exactly as shown, with lighting and perspective "
        "matched to the scene"
    ),
    ReferenceType.CHARACTER: (
        "Replace the main character in the first image with the character from "
        "the second image, preserving their identity, face, outfit and "
        "proportions while adopting the pose and framing of the first image"
    ),
    ReferenceType.COMPOSITION: (
        "Rearrange the first image to follow the composition of the second "
        "image: match its framing, camera angle and placement of elements "
        "while keeping the content and style of the first image"
    ),
}

# Output dimensions for the pro model, keyed by ``sizeRatio``.
SIZE_RATIOS: dict[str, tuple[int, int]] = {
    "1:1": (1024, 1024),
    "21:9": (1568, 672),
    "16:9": (1344, 768),
    "4:3": (1152, 896),
    "3:2": (1216, 832),
}

# --- Tools ---

INPAINT_PROMPT = "fill the masked area naturally"
OUTPAINT_PROMPT = "extend the image naturally"
