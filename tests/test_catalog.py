import pytest

from promo_engine.catalog import constraints
from promo_engine.catalog.themes import (
    VISUAL_THEMES,
    detect_image_type,
    detect_language,
    detect_product_type,
    detect_visual_theme,
)


@pytest.mark.parametrize("description, theme", [
    ("A meditation and sleep app for stressed parents", "wellness_calm"),
    ("Kubernetes cost dashboard for backend developers", "tech_professional"),
    ("Exclusive concierge service for VIP travellers", "luxury_elegant"),
    ("Something nobody has keywords for", "modern_clean"),
])
def test_visual_theme_detection(description, theme):
    assert detect_visual_theme(description) == theme


def test_every_theme_maps_to_a_design_pack():
    for theme in VISUAL_THEMES.values():
        assert theme.design_pack in constraints.DESIGN_PACKS


@pytest.mark.parametrize("message, product_type", [
    ("An AI copilot for support teams", "ai_tool"),
    ("A SaaS for invoices", "saas"),
    ("Our e-commerce boutique", "ecommerce"),
    ("Modern banking for freelancers", "finance"),
    ("Consultant onboarding", "service"),
    ("Industrial pumps", "b2b"),
])
def test_product_type_detection(message, product_type):
    assert detect_product_type(message) == product_type


def test_language_detection():
    assert detect_language("Une vidéo pour les équipes de vente avec des chiffres") == "français"
    assert detect_language("A video for the sales team") == "english"


def test_image_type_detection():
    assert detect_image_type("show the product", "Dashboard screenshot") == "screenshot"
    assert detect_image_type("brand logo", None) == "logo"
    assert detect_image_type(None, "Team photo") == "photo"
    assert detect_image_type(None, None) == "unknown"


def test_shot_effect_helpers():
    assert constraints.default_effect("CTA_DIRECT") == "TEXT_POP_SCALE"
    assert constraints.default_effect("UNKNOWN_SHOT") == constraints.DEFAULT_EFFECT
    assert constraints.default_fonts("UNKNOWN_SHOT") == ["INTER"]
