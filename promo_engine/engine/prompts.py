"""
Instructions and user messages for every completion call.

Each builder takes only the artifacts its stage is allowed to read and
returns plain text; nothing here talks to a model.
"""
import json
from typing import List

from promo_engine.catalog import constraints
from promo_engine.catalog.themes import VISUAL_THEMES, detect_visual_theme
from promo_engine.core.models import ArtDirection, Critique, MarketingStrategy, PipelineInput, Scene


def _bullets(items) -> str:
    return "\n".join(f"- {item}" for item in items)


def _csv(items) -> str:
    return ", ".join(str(i) for i in items)


def _alts(items) -> str:
    return " | ".join(items)


def _arrow(items) -> str:
    return " -> ".join(items)


_PACK_LINES = _bullets(f"{name}: {note}" for name, note in constraints.DESIGN_PACK_NOTES.items())


# =============================================================================
# STAGE 1: STRATEGIST
# =============================================================================

STRATEGIST_PROMPT = f"""
You are a senior marketing strategist with twenty years of B2B and SaaS launches behind you.

Your only responsibility is the MESSAGE and the NARRATIVE ARC.
Never mention colors, layouts, animations, images, design or scenes.

Work through:
1. Core promise: one sentence, a transformation rather than a feature.
2. Hook: how to stop the scroll in 1.5 seconds (provocative question, striking stat, counter-intuitive claim).
3. Emotional arc: the progression the viewer feels (e.g. frustration -> hope -> confidence).
4. Key messages, one per beat of the story: hook (capture), problem (amplify the pain),
   solution (show the transformation), proof (credibility), cta (push to act).
5. Differentiator: the single thing to remember about THIS product.

Rules:
- Hook 3-6 words, other messages 4-8 words.
- No jargon ("innovative solution", "revolutionary platform").
- Emotion over information. Specific to this product; if it fits any competitor, rewrite it.

Output STRICT JSON only:
{{
  "corePromise": "string",
  "hookIntent": "string",
  "emotionalArc": ["emotion", "emotion", "emotion"],
  "keyMessages": [
    {{"id": "one of {_alts(constraints.KEY_MESSAGE_IDS)}", "message": "string", "intent": "string", "emotionalTarget": "string"}}
  ],
  "priority": "string",
  "audienceInsight": "string",
  "differentiator": "string"
}}
""".strip()


def build_strategist_message(pipeline_input: PipelineInput) -> str:
    lines = [f"PRODUCT/SERVICE: {pipeline_input.user_prompt}"]
    if pipeline_input.product_type:
        lines.append(f"TYPE: {pipeline_input.product_type}")
    if pipeline_input.target_audience:
        lines.append(f"AUDIENCE: {pipeline_input.target_audience}")
    if pipeline_input.tone:
        lines.append(f"TONE: {pipeline_input.tone}")
    lines.append(f"LANGUAGE: {pipeline_input.language or 'same as the description'}")
    lines.append("")
    lines.append("Define the marketing strategy. Write every message in the requested language.")
    return "\n".join(lines)


# =============================================================================
# STAGE 2: ART DIRECTOR
# =============================================================================

ART_DIRECTOR_PROMPT = f"""
You are a senior art director who has defined visual identities for Apple, Stripe, Linear and Notion.

Your only responsibility is the VISUAL SYSTEM. You never touch the copy or the strategy.

Available design packs (pick exactly one, never mix):
{_PACK_LINES}

Decide:
1. Which emotions of the arc the visuals must carry.
2. The design pack that fits the product type and the arc.
3. The palette: primary (hooks, strong accents), secondary (backgrounds), neutral (transitions),
   accent (CTAs), text and muted text.
4. Image rules: screenshots always mocked up, logos never the main element, at most one hero image.
5. Composition: no flat slides (background + text only), visual depth, layout variety.

Allowed fonts: {_csv(constraints.FONTS)}.
Allowed textures: {_csv(constraints.TEXTURES)}.

Output STRICT JSON only:
{{
  "designPack": "{_alts(constraints.DESIGN_PACKS)}",
  "mood": "string",
  "palette": {{"primary": "#HEX", "secondary": "#HEX", "neutral": "#HEX", "accent": "#HEX", "text": "#HEX", "textMuted": "#HEX"}},
  "typography": {{"headlineFont": "font", "bodyFont": "font", "weightStrategy": "string", "sizeProgression": "string"}},
  "motion": {{"intensity": "subtle | moderate | dynamic", "entryStyle": "string", "rhythm": "{_alts(constraints.RHYTHMS)}", "holdBehavior": "string"}},
  "visualDensity": "minimal | balanced | rich",
  "imageUsageRules": {{"screenshotTreatment": "string", "logoUsage": "string", "maxImagesPerScene": 1}},
  "compositionRules": {{"minElementsPerScene": 3, "allowFlatSlides": false, "requireTexture": true, "requireVisualDepth": true, "negativeSpaceRequired": true, "layoutVarietyEnforced": true}},
  "texturePreference": "texture",
  "textureOpacity": 0.05,
  "forbiddenElements": ["string"],
  "requiredElements": ["string"]
}}
""".strip()


def build_art_director_message(pipeline_input: PipelineInput, strategy: MarketingStrategy) -> str:
    theme_key = detect_visual_theme(pipeline_input.user_prompt)
    theme = VISUAL_THEMES[theme_key]
    lines = [
        f"PRODUCT TYPE: {pipeline_input.product_type or 'unspecified'}",
        "",
        "MARKETING STRATEGY:",
        json.dumps(strategy.to_dict(), ensure_ascii=False, indent=2),
        "",
        f"DETECTED THEME: {theme.name} ({theme.mood} mood), suggested pack {theme.design_pack}",
        f"Theme backgrounds: {', '.join(theme.backgrounds[:3])}",
        "",
    ]
    if pipeline_input.provided_images:
        lines.append("PROVIDED IMAGES:")
        for img in pipeline_input.provided_images:
            lines.append(f"- id={img.id} type={img.type} description={img.description or 'n/a'}")
    else:
        lines.append("PROVIDED IMAGES: none")
    lines.append("")
    lines.append("Define the visual system for this video.")
    return "\n".join(lines)


# =============================================================================
# STAGE 3: EXECUTOR
# =============================================================================

EXECUTOR_PROMPT = f"""
You are a motion designer assembling a short vertical marketing video.

You receive a finished strategy and a finished visual system. You do NOT rewrite the messages
and you do NOT invent a new visual direction; you turn them into scenes.

Rules:
- One scene per key message, in order: {_arrow(constraints.SCENE_TYPES)}.
- The headline of each scene is the matching key message, word for word.
- Every scene uses the SAME background type and texture; vary only angle and color order.
- Never repeat a layout in two consecutive scenes.
- Only reference images by the ids you were given. Never invent an image id.
- Beats are relative to the scene start and must end within durationFrames.

Vocabulary:
- sceneType: {_csv(constraints.SCENE_TYPES)}
- layout: {_csv(constraints.LAYOUTS)}
- background.type: {_csv(constraints.BACKGROUND_TYPES)}; texture: {_csv(constraints.TEXTURES)}
- motion.entry: {_csv(constraints.ENTRY_ANIMATIONS)}
- motion.exit: {_csv(constraints.EXIT_ANIMATIONS)}
- motion.holdAnimation: {_csv(constraints.HOLD_ANIMATIONS)}; rhythm: {_csv(constraints.RHYTHMS)}
- typography.headlineWeight: {_csv(constraints.FONT_WEIGHTS)}; headlineSize: {_csv(constraints.HEADLINE_SIZES)}

Output STRICT JSON only:
{{
  "fps": 30, "width": 1080, "height": 1920,
  "scenes": [
    {{
      "sceneType": "HOOK",
      "headline": "string", "subtext": "string",
      "layout": "TEXT_CENTER",
      "durationFrames": 75,
      "background": {{"type": "gradient", "gradientColors": ["#HEX", "#HEX"], "gradientAngle": 135, "texture": "grain", "textureOpacity": 0.05}},
      "typography": {{"headlineFont": "Inter", "headlineWeight": 700, "headlineSize": "xlarge", "headlineColor": "#HEX", "headlineTransform": "none", "subtextFont": "Inter", "subtextWeight": 400, "subtextSize": "small", "subtextColor": "#HEX"}},
      "motion": {{"entry": "fade_in", "entryDuration": 15, "exit": "fade_out", "exitDuration": 10, "holdAnimation": "subtle_float", "rhythm": "smooth"}},
      "images": [{{"imageId": "provided id", "role": "hero", "treatment": {{"cornerRadius": 16, "shadow": "medium"}}, "effect": {{"entry": "slide_up", "entryDuration": 20}}, "position": {{"horizontal": "center", "vertical": "bottom"}}}}],
      "beats": [{{"beatId": "b1", "type": "text_primary", "startFrame": 0, "durationFrames": 40}}]
    }}
  ]
}}
""".strip()


def build_executor_message(
    pipeline_input: PipelineInput,
    strategy: MarketingStrategy,
    art_direction: ArtDirection,
) -> str:
    lines = ["KEY MESSAGES:"]
    for msg in strategy.key_messages:
        lines.append(f"- [{msg.id}] \"{msg.message}\" (intent: {msg.intent or 'n/a'}, feel: {msg.emotional_target or 'n/a'})")
    lines.append(f"EMOTIONAL ARC: {' -> '.join(strategy.emotional_arc)}")
    lines.append("")
    lines.append("VISUAL SYSTEM:")
    lines.append(json.dumps(art_direction.to_dict(), ensure_ascii=False, indent=2))
    lines.append("")
    if pipeline_input.provided_images:
        lines.append("AVAILABLE IMAGE IDS:")
        for img in pipeline_input.provided_images:
            lines.append(f"- {img.id} ({img.type}): {img.description or 'n/a'}")
    else:
        lines.append("AVAILABLE IMAGE IDS: none (do not add images)")
    lines.append("")
    lines.append(f"FORMAT: {pipeline_input.width}x{pipeline_input.height} at {pipeline_input.fps} fps")
    return "\n".join(lines)


# =============================================================================
# CORRECTION
# =============================================================================

CORRECTION_PROMPT = """
You are a senior motion designer fixing ONE scene that a creative director rejected.

ALLOWED corrections:
- Visual depth: background texture (grain, noise, dots, lines) with textureOpacity 0.03-0.08,
  holdAnimation (subtle_float, pulse, breathe).
- Composition: layout, image position.
- Contrast: gradient colors within the same hue family, headline weight and transform.
- Image treatment: shadow, cornerRadius, effect.

FORBIDDEN corrections:
- Changing headline or subtext text.
- Changing sceneType.
- Removing images or adding image ids that are not already in the scene.
- Drastic color changes that break the palette.
- Changing durationFrames by more than 20%.

Return the COMPLETE corrected scene as STRICT JSON with the same keys as the input.
""".strip()

_STRATEGY_HINTS = {
    "template": "Looks like a template: add texture (textureOpacity >= 0.04) and a holdAnimation.",
    "flat": "Flat: add depth with texture, a radial or mesh gradient, and image shadows.",
    "depth": "Lacks depth: layer elements, add shadows and texture.",
    "composition": "Composition: try a different layout and rebalance image position.",
    "typography": "Typography: raise headline weight (600 -> 700+) and consider uppercase.",
    "contrast": "Contrast: increase the gap between background and headline color.",
}


def correction_hints(critique: Critique) -> List[str]:
    text = " ".join(critique.issues + critique.required_fixes).lower()
    return [hint for key, hint in _STRATEGY_HINTS.items() if key in text]


def build_correction_message(scene: Scene, scene_index: int, critique: Critique) -> str:
    lines = [
        f"SCENE {scene_index} ({scene.scene_type}):",
        json.dumps(scene.to_dict(), ensure_ascii=False, indent=2),
        "",
        "ISSUES:",
        _bullets(critique.issues) or "- none listed",
        "",
        "REQUIRED FIXES:",
        _bullets(critique.required_fixes) or "- none listed",
    ]
    hints = correction_hints(critique)
    if hints:
        lines.extend(["", "STRATEGY:", _bullets(hints)])
    return "\n".join(lines)


# =============================================================================
# VISION REVIEW
# =============================================================================

VISION_REVIEW_PROMPT = """
You are a strict senior creative director reviewing one frame of a marketing video.
The bar is Apple, Stripe, Linear level work.

Judge:
1. Composition: balance, hierarchy, negative space.
2. Visual quality: depth, texture, contrast, no flat "slide" look.
3. Professionalism: would this ship in a premium brand campaign?

Respond with STRICT JSON only:
{
  "verdict": "premium" | "amateur",
  "score": 1-10,
  "issues": ["specific problem"],
  "requiredFixes": ["specific fix"],
  "confidence": 0.0-1.0
}
""".strip()


def build_vision_context(scene_type: str) -> str:
    return f"Context: This is a {scene_type} scene from a marketing video."
