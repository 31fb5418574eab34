from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class VisualTheme:
    name: str
    mood: str
    backgrounds: Tuple[str, ...]
    transitions: Tuple[str, ...]
    text_gradients: Tuple[str, ...]
    design_pack: str


VISUAL_THEMES: Dict[str, VisualTheme] = {
    "tech_professional": VisualTheme(
        name="Tech Professional",
        mood="professional",
        backgrounds=("darkBlue", "charcoal", "deepSpace", "darkTeal"),
        transitions=("wipe", "dissolve", "slide", "morph", "hexagon"),
        text_gradients=("teal", "sapphire", "arctic", "cosmic", "silver"),
        design_pack="clean_saas",
    ),
    "modern_clean": VisualTheme(
        name="Modern Clean",
        mood="calm",
        backgrounds=("minimalist", "darkPure", "glassDark", "charcoal"),
        transitions=("dissolve", "blinds", "slide", "push", "morph"),
        text_gradients=("teal", "ocean", "platinum", "mint", "ice"),
        design_pack="clean_saas",
    ),
    "creative_vibrant": VisualTheme(
        name="Creative Vibrant",
        mood="energetic",
        backgrounds=("meshWarm", "sunsetGlow", "cosmicPurple", "neonCity", "hotPink"),
        transitions=("sunburst", "vortex", "liquid", "prism", "starburst"),
        text_gradients=("sunset", "purple", "aurora", "rainbow", "berry"),
        design_pack="soft_gradient",
    ),
    "futuristic_ai": VisualTheme(
        name="Futuristic AI",
        mood="dramatic",
        backgrounds=("cyberpunk", "deepSpace", "neonCity", "midnight", "retroWave"),
        transitions=("glitch", "electric", "prism", "neon", "hexagon"),
        text_gradients=("cosmic", "aurora", "prism", "chrome", "ice"),
        design_pack="dark_premium",
    ),
    "warm_friendly": VisualTheme(
        name="Warm Friendly",
        mood="playful",
        backgrounds=("meshWarm", "sunsetGlow", "desertDawn", "orangeCrush", "tropicalBliss"),
        transitions=("morph", "ripple", "dissolve", "curtain", "smoke"),
        text_gradients=("warmGold", "coral", "peach", "amber", "rosegold"),
        design_pack="soft_gradient",
    ),
    "corporate_trust": VisualTheme(
        name="Corporate Trust",
        mood="professional",
        backgrounds=("darkBlue", "charcoal", "minimalist", "deepSpace", "radialDark"),
        transitions=("wipe", "slide", "push", "blinds", "dissolve"),
        text_gradients=("sapphire", "silver", "platinum", "teal", "gold"),
        design_pack="light_editorial",
    ),
    "wellness_calm": VisualTheme(
        name="Wellness Calm",
        mood="calm",
        backgrounds=("forestMist", "oceanBreeze", "arcticFrost", "meshCool", "tropicalBliss"),
        transitions=("dissolve", "ripple", "smoke", "morph", "liquid"),
        text_gradients=("mint", "ocean", "arctic", "teal", "lavender"),
        design_pack="soft_gradient",
    ),
    "luxury_elegant": VisualTheme(
        name="Luxury Elegant",
        mood="dramatic",
        backgrounds=("deepSpace", "charcoal", "midnight", "glassDark", "radialDark"),
        transitions=("dissolve", "morph", "curtain", "diamond", "ink"),
        text_gradients=("gold", "platinum", "rosegold", "silver", "bronze"),
        design_pack="dark_premium",
    ),
}

DEFAULT_THEME = "modern_clean"

INDUSTRY_KEYWORDS: Dict[str, List[str]] = {
    "tech_professional": [
        "api", "developer", "code", "programming", "devops", "infrastructure",
        "backend", "frontend", "database", "cloud", "kubernetes", "docker",
        "fintech", "blockchain", "crypto", "trading", "payment", "banking",
        "security", "authentication", "encryption", "cybersecurity",
    ],
    "modern_clean": [
        "productivity", "workflow", "task", "project management", "collaboration",
        "team", "workspace", "notion", "asana", "monday", "organize", "efficiency",
        "automation", "integration", "sync", "dashboard", "analytics",
    ],
    "creative_vibrant": [
        "design", "creative", "video", "photo", "art", "illustration", "graphic",
        "marketing", "social media", "content", "brand", "visual", "animation",
        "template", "canva", "figma", "editor", "creator",
    ],
    "futuristic_ai": [
        "ai", "artificial intelligence", "machine learning", "ml", "gpt", "llm",
        "neural", "automation", "bot", "chatbot", "voice", "recognition",
        "prediction", "intelligent", "smart", "future", "innovation",
    ],
    "warm_friendly": [
        "shop", "store", "buy", "sell", "commerce", "retail", "fashion",
        "food", "delivery", "booking", "travel", "lifestyle", "dating",
        "social", "community", "family", "kids", "pets",
    ],
    "corporate_trust": [
        "enterprise", "corporate", "business", "b2b", "legal", "compliance",
        "hr", "human resources", "recruitment", "payroll", "accounting",
        "invoice", "crm", "erp", "salesforce", "consulting",
    ],
    "wellness_calm": [
        "health", "fitness", "wellness", "meditation", "yoga", "mental",
        "therapy", "sleep", "nutrition", "diet", "workout", "exercise",
        "mindfulness", "calm", "relax", "stress", "healthcare", "medical",
    ],
    "luxury_elegant": [
        "luxury", "premium", "exclusive", "vip", "elite", "boutique",
        "concierge", "private", "high-end", "prestige", "refined",
    ],
}


def theme_scores(description: str) -> Dict[str, int]:
    """Substring hit count per theme (so "ai" also matches inside "email")."""
    lowered = description.lower()
    return {
        theme: sum(1 for keyword in keywords if keyword in lowered)
        for theme, keywords in INDUSTRY_KEYWORDS.items()
    }


def detect_visual_theme(description: str) -> str:
    """
    Highest-scoring theme for a product description. Ties keep the theme
    listed first; no hits at all falls back to modern_clean.
    """
    best_theme, best_score = DEFAULT_THEME, 0
    for theme, score in theme_scores(description).items():
        if score > best_score:
            best_theme, best_score = theme, score
    return best_theme


# =============================================================================
# REQUEST HINT INFERENCE
# =============================================================================

_FRENCH_INDICATORS = {"le", "la", "les", "de", "du", "des", "pour", "avec", "une", "un"}


def detect_product_type(message: str) -> str:
    lowered = message.lower()
    words = set(lowered.replace(",", " ").replace(".", " ").split())
    if "ai" in words or "intelligence artificielle" in lowered:
        return "ai_tool"
    if "saas" in lowered or "app" in words or "dashboard" in lowered:
        return "saas"
    if "ecommerce" in lowered or "e-commerce" in lowered or "boutique" in lowered:
        return "ecommerce"
    if "finance" in lowered or "banque" in lowered or "bank" in lowered:
        return "finance"
    if "creative" in lowered or "design" in lowered:
        return "creative"
    if "service" in lowered or "consultant" in lowered:
        return "service"
    return "b2b"


def detect_language(message: str) -> str:
    words = message.lower().split()
    french_hits = sum(1 for w in words if w in _FRENCH_INDICATORS)
    return "français" if french_hits > 2 else "english"


def detect_image_type(intent: Optional[str], description: Optional[str] = None) -> str:
    combined = f"{intent or ''} {description or ''}".lower()
    if "screenshot" in combined or "dashboard" in combined:
        return "screenshot"
    if "logo" in combined:
        return "logo"
    if "photo" in combined or "image" in combined:
        return "photo"
    if "icon" in combined:
        return "icon"
    if "graphic" in combined or "illustration" in combined:
        return "graphic"
    return "unknown"
