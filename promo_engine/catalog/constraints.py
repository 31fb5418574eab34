"""
Closed vocabularies for generated video specifications.

These tables are shared by the prompt builders (so the models are told what
they may use) and by the validator (so anything else is caught).
"""
from typing import Dict, List

SCENE_TYPES = ("HOOK", "PROBLEM", "SOLUTION", "PROOF", "CTA")

KEY_MESSAGE_IDS = ("hook", "problem", "solution", "proof", "cta")

LAYOUTS = (
    "TEXT_CENTER",
    "TEXT_LEFT",
    "TEXT_RIGHT",
    "TEXT_BOTTOM",
    "TEXT_TOP",
    "SPLIT_HORIZONTAL",
    "SPLIT_VERTICAL",
    "DIAGONAL_SLICE",
    "CORNER_ACCENT",
    "FLOATING_CARDS",
    "FULLSCREEN_STATEMENT",
    "MINIMAL_WHISPER",
)

BACKGROUND_TYPES = ("solid", "gradient", "radial", "mesh")
TEXTURES = ("none", "grain", "noise", "dots", "lines")

FONTS = (
    "Inter",
    "Space Grotesk",
    "Satoshi",
    "Bebas Neue",
    "Playfair Display",
    "DM Sans",
    "Clash Display",
    "Cabinet Grotesk",
)
FONT_WEIGHTS = (300, 400, 500, 600, 700, 800, 900)
HEADLINE_SIZES = ("small", "medium", "large", "xlarge", "massive")

ENTRY_ANIMATIONS = (
    "fade_in", "slide_up", "slide_down", "slide_left", "slide_right",
    "scale_up", "scale_down", "pop", "typewriter", "blur_in", "split_reveal",
    "wipe_right", "wipe_up", "glitch_in", "bounce_in", "rotate_in", "none",
)
EXIT_ANIMATIONS = (
    "fade_out", "slide_up", "slide_down", "slide_left", "slide_right",
    "scale_down", "blur_out", "none",
)
HOLD_ANIMATIONS = ("none", "subtle_float", "pulse", "shake", "breathe")
RHYTHMS = ("snappy", "smooth", "dramatic", "punchy")
ACCENT_TYPES = ("none", "underline", "highlight", "box", "glow", "shadow", "emoji")

DESIGN_PACKS = ("clean_saas", "soft_gradient", "dark_premium", "light_editorial", "bold_impact")

DESIGN_PACK_NOTES: Dict[str, str] = {
    "clean_saas": "SaaS, tech, B2B apps. Trust and clarity; soft light gradients; Inter/Space Grotesk; smooth motion.",
    "soft_gradient": "Lifestyle, creative, wellness. Pastel mesh gradients; Clash Display/Satoshi; organic motion.",
    "dark_premium": "Luxury and high-end. Deep blacks with bright accents; Bebas Neue/Space Grotesk; slow cinematic motion.",
    "light_editorial": "Corporate, consulting. Whites and light greys; Inter/Satoshi; crisp motion.",
    "bold_impact": "Promotions and urgency. Saturated high contrast; Clash Display/Bebas Neue; punchy motion.",
}

PRODUCT_TYPES = ("saas", "b2b", "ecommerce", "service", "ai_tool", "creative", "finance")
TONES = ("professional", "casual", "urgent", "friendly")
IMAGE_TYPES = ("screenshot", "logo", "photo", "graphic", "icon", "unknown")

# =============================================================================
# SHOT TYPES (AI-authored shot plans)
# =============================================================================

SHOT_EFFECT_MAP: Dict[str, List[str]] = {
    "AGGRESSIVE_HOOK": ["TEXT_POP_SCALE", "TEXT_WITH_IMAGE_POP", "BACKGROUND_FLASH", "HARD_CUT_TEXT"],
    "PATTERN_INTERRUPT": ["HARD_CUT_TEXT", "TEXT_MASK_REVEAL", "BACKGROUND_FLASH", "TEXT_POP_SCALE"],
    "PROBLEM_PRESSURE": ["TEXT_SLIDE_UP", "SPLIT_SCREEN_TEXT_IMAGE", "TEXT_FADE_IN", "SOFT_ZOOM_IN"],
    "PROBLEM_CLARITY": ["TEXT_FADE_IN", "SOFT_ZOOM_IN", "TEXT_SLIDE_UP", "TEXT_SLIDE_LEFT"],
    "SOLUTION_REVEAL": ["IMAGE_REVEAL_MASK", "UI_SWIPE_REVEAL", "TEXT_WITH_IMAGE_POP", "SPLIT_SCREEN_TEXT_IMAGE"],
    "VALUE_PROOF": ["TEXT_SLIDE_LEFT", "TEXT_FADE_IN", "TEXT_SLIDE_UP", "SPLIT_SCREEN_TEXT_IMAGE"],
    "POWER_STAT": ["TEXT_POP_SCALE", "HARD_CUT_TEXT", "BACKGROUND_FLASH", "TEXT_MASK_REVEAL"],
    "CTA_DIRECT": ["TEXT_POP_SCALE", "BACKGROUND_FLASH", "TEXT_SLIDE_UP", "HARD_CUT_TEXT"],
}

SHOT_TYPES = tuple(SHOT_EFFECT_MAP)

SHOT_FONT_MAP: Dict[str, List[str]] = {
    "AGGRESSIVE_HOOK": ["SPACE_GROTESK", "SATOSHI"],
    "PATTERN_INTERRUPT": ["SPACE_GROTESK", "SATOSHI"],
    "PROBLEM_PRESSURE": ["INTER", "SPACE_GROTESK"],
    "PROBLEM_CLARITY": ["INTER", "SATOSHI"],
    "SOLUTION_REVEAL": ["SATOSHI", "SPACE_GROTESK"],
    "VALUE_PROOF": ["INTER", "SATOSHI"],
    "POWER_STAT": ["SPACE_GROTESK", "SATOSHI"],
    "CTA_DIRECT": ["SATOSHI", "SPACE_GROTESK"],
}

DEFAULT_SHOT_FONTS = ["INTER"]
DEFAULT_EFFECT = "TEXT_FADE_IN"

MAX_SHOTS = 6
OPENING_SHOT_TYPES = ("AGGRESSIVE_HOOK", "PATTERN_INTERRUPT")
CLOSING_SHOT_TYPE = "CTA_DIRECT"


def allowed_effects(shot_type: str) -> List[str]:
    return list(SHOT_EFFECT_MAP.get(shot_type, []))


def default_effect(shot_type: str) -> str:
    effects = SHOT_EFFECT_MAP.get(shot_type)
    return effects[0] if effects else DEFAULT_EFFECT


def default_fonts(shot_type: str) -> List[str]:
    return list(SHOT_FONT_MAP.get(shot_type, DEFAULT_SHOT_FONTS))

