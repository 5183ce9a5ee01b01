"""Pricing tiers and the headshot style catalogue."""
from dataclasses import dataclass

_NEGATIVE = "cartoon, illustration, painting, drawing, blurry, distorted, disfigured, bad anatomy, ugly"

HEADSHOT_STYLES = {
    "corporate": {
        "name": "Corporate Executive",
        "prompt": "professional corporate headshot portrait photo of TOK, wearing formal business attire suit, clean neutral gray background, soft studio lighting, confident friendly expression, sharp focus, 8k, professional photography",
        "negative_prompt": _NEGATIVE,
    },
    "tech": {
        "name": "Tech Startup",
        "prompt": "professional headshot portrait photo of TOK, smart casual attire, modern minimalist background, natural soft lighting, approachable confident smile, silicon valley tech style, 8k professional photography",
        "negative_prompt": _NEGATIVE,
    },
    "creative": {
        "name": "Creative Professional",
        "prompt": "artistic professional headshot portrait photo of TOK, creative industry style, dramatic lighting with soft shadows, unique artistic angle, expressive confident look, modern aesthetic, 8k photography",
        "negative_prompt": _NEGATIVE,
    },
    "finance": {
        "name": "Finance & Banking",
        "prompt": "professional finance executive headshot portrait photo of TOK, formal navy or charcoal suit, conservative elegant style, trustworthy authoritative expression, premium studio lighting, 8k professional photography",
        "negative_prompt": _NEGATIVE + ", casual",
    },
    "realEstate": {
        "name": "Real Estate",
        "prompt": "professional real estate agent headshot portrait photo of TOK, friendly warm approachable smile, business casual attire, bright warm lighting, trustworthy welcoming expression, 8k professional photography",
        "negative_prompt": _NEGATIVE + ", unfriendly",
    },
    "healthcare": {
        "name": "Healthcare",
        "prompt": "professional healthcare medical headshot portrait photo of TOK, clean clinical appearance, caring compassionate expression, bright clean lighting, trustworthy professional look, 8k photography",
        "negative_prompt": _NEGATIVE,
    },
    "legal": {
        "name": "Legal Professional",
        "prompt": "professional lawyer attorney headshot portrait photo of TOK, formal suit, authoritative yet approachable expression, traditional prestigious style, high quality studio portrait, 8k professional photography",
        "negative_prompt": _NEGATIVE + ", casual",
    },
    "academic": {
        "name": "Academic",
        "prompt": "professional academic professor headshot portrait photo of TOK, scholarly intelligent appearance, warm approachable expression, university professional style, soft natural lighting, 8k photography",
        "negative_prompt": _NEGATIVE,
    },
    "linkedin": {
        "name": "LinkedIn Optimized",
        "prompt": "professional LinkedIn profile headshot portrait photo of TOK, friendly confident genuine smile, clean simple background, perfect for social media, approachable business professional, 8k photography",
        "negative_prompt": _NEGATIVE + ", bad lighting",
    },
    "founder": {
        "name": "Startup Founder",
        "prompt": "modern startup founder CEO headshot portrait photo of TOK, confident visionary expression, contemporary entrepreneurial style, tech leader aesthetic, inspiring presence, 8k professional photography",
        "negative_prompt": _NEGATIVE + ", boring",
    },
}

ALL_STYLES = tuple(HEADSHOT_STYLES)


@dataclass(frozen=True)
class Tier:
    id: str
    name: str
    price_cents: int
    styles: tuple
    images_per_style: int
    delivery: str

    @property
    def headshot_count(self):
        return len(self.styles) * self.images_per_style

    @property
    def price_config_key(self):
        return f"STRIPE_PRICE_{self.id.upper()}"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price_cents / 100,
            "styles": len(self.styles),
            "headshots": self.headshot_count,
            "delivery": self.delivery,
        }


TIERS = {
    "starter": Tier(
        id="starter",
        name="Starter",
        price_cents=2900,
        styles=("corporate", "tech", "creative", "linkedin", "founder"),
        images_per_style=8,
        delivery="48 hours",
    ),
    "professional": Tier(
        id="professional",
        name="Professional",
        price_cents=4900,
        styles=ALL_STYLES,
        images_per_style=10,
        delivery="2 hours",
    ),
    "executive": Tier(
        id="executive",
        name="Executive",
        price_cents=9900,
        styles=ALL_STYLES,
        images_per_style=20,
        delivery="1 hour",
    ),
}


def get_tier(tier_id):
    """Return the Tier for ``tier_id`` or None."""
    return TIERS.get(tier_id or "")


def style_name(style):
    entry = HEADSHOT_STYLES.get(style)
    return entry["name"] if entry else style
