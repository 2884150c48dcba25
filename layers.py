from types import MappingProxyType

# Layer configuration: (slot name, trait_type key), bottom layer first
LAYERS = (
    ("Base Body", "Base Body"),
    ("Eye Shape", "Eye Shape"),
    ("Eye Color", "Eye Color"),
    ("Wearable (Body)", "Wearable (Body)"),
    ("Wearable (Face)", "Wearable (Face)"),
    ("Wearable (Eyes)", "Wearable (Eyes)"),
    ("Wearable (Head)", "Wearable (Head)"),
    ("Wearable (Hands) L", "Wearable (Hands)"),
    ("Wearable (Hands) R", "Wearable (Hands)"),
    ("Wearable (Pet)", "Wearable (Pet)"),
)

SLOT_ORDER = tuple(slot for slot, _ in LAYERS)

HANDS_KEY = "Wearable (Hands)"
LEFT_HAND_SLOT = "Wearable (Hands) L"
RIGHT_HAND_SLOT = "Wearable (Hands) R"

PET_KEY = "Wearable (Pet)"
BODY_KEY = "Wearable (Body)"
FOXY_TAIL = "Foxy Tail"

# Polygon collateral tokens share art with their mainnet counterparts
COLLATERAL_ALIASES = MappingProxyType(
    {
        "amUSDT": "aUSDT",
        "amAAVE": "aAAVE",
        "amDAI": "aDAI",
        "amUSDC": "aUSDC",
    }
)

IMAGE_EXTENSIONS = (".png", ".PNG", ".jpg", ".JPG", ".jpeg", ".JPEG")

SPRITES_DIR = ("Trait Files", "Sprites")


def alias(value: str) -> str:
    """Map a trait value through the collateral alias table."""
    return COLLATERAL_ALIASES.get(value, value)
