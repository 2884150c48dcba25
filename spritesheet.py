import json
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image

from layers import (
    BODY_KEY,
    FOXY_TAIL,
    HANDS_KEY,
    IMAGE_EXTENSIONS,
    LAYERS,
    LEFT_HAND_SLOT,
    PET_KEY,
    RIGHT_HAND_SLOT,
    SPRITES_DIR,
    alias,
)

NO_MATCHING_CONFIG = "No matching configuration found"
NO_LAYERS = "No layers found to composite"


@dataclass(frozen=True)
class Attribute:
    trait_type: str
    value: str

    @classmethod
    def from_dict(cls, data: dict) -> "Attribute":
        trait_type = data.get("trait_type")
        value = data.get("value")
        return cls(
            trait_type="" if trait_type is None else str(trait_type),
            value="" if value is None else str(value),
        )

    def to_dict(self) -> dict:
        return {"trait_type": self.trait_type, "value": self.value}

    @property
    def label(self) -> str:
        return f"{self.trait_type}: {self.value}"


@dataclass(frozen=True)
class Gotchi:
    id: int
    attributes: Tuple[Attribute, ...]
    collateral: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict, id_key: str = "id") -> "Gotchi":
        """Build a gotchi from a raw JSON record, reading its id from ``id_key``."""
        return cls(
            id=int(data[id_key]),
            attributes=tuple(
                Attribute.from_dict(attr) for attr in data.get("attributes") or []
            ),
            collateral=data.get("collateral"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attributes": [attr.to_dict() for attr in self.attributes],
        }


@dataclass(frozen=True)
class SlotRequest:
    """One attribute to draw in one slot, from one sprite folder."""

    slot: str
    attribute: Attribute
    folder: str

    @property
    def label(self) -> str:
        if self.slot in (LEFT_HAND_SLOT, RIGHT_HAND_SLOT):
            return f"{self.slot}: {self.attribute.value}"
        return self.attribute.label


@dataclass(frozen=True)
class ResolvedLayer:
    slot: str
    source_path: str
    label: str


@dataclass(frozen=True, eq=False)
class Loaded:
    layer: ResolvedLayer
    image: Image.Image


@dataclass(frozen=True)
class Missing:
    entry: str


@dataclass(frozen=True)
class LoadError:
    entry: str


SlotOutcome = Union[Loaded, Missing, LoadError]


@dataclass
class GenerationResult:
    success: bool
    error: Optional[str] = None
    layers_used: List[str] = field(default_factory=list)
    missing_images: List[str] = field(default_factory=list)
    load_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {
            "success": self.success,
            "details": {
                "layersUsed": list(self.layers_used),
                "missingImages": list(self.missing_images),
                "loadErrors": list(self.load_errors),
            },
        }
        if self.error is not None:
            result["error"] = self.error
        return result


def load_config(config_path) -> dict:
    """Load the layer rules configuration.

    Args:
        config_path: Path to the JSON configuration file

    Returns:
        Configuration dictionary with an ``if_keys_and_values`` rule list

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid JSON or has the wrong shape
    """
    config_path = pathlib.Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        config = json.load(f)

    if not isinstance(config, dict):
        raise ValueError(f"Config must be a JSON object: {config_path}")
    if not isinstance(config.get("if_keys_and_values", []), list):
        raise ValueError("Config 'if_keys_and_values' must be a list")

    return config


def load_gotchis(
    json_path, id_key: str = "id"
) -> Tuple[List[Gotchi], List[Dict[str, Any]]]:
    """Load the list of gotchis to render.

    A record that cannot be read as a gotchi is set aside instead of failing
    the whole list.

    Args:
        json_path: Path to a JSON array of gotchi records
        id_key: Record key holding the gotchi id

    Returns:
        Gotchis in file order, and one ``{index, id, attributes, error}``
        entry per rejected record

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid JSON or not an array
    """
    json_path = pathlib.Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"Input file not found: {json_path}")

    with open(json_path, encoding="utf-8") as f:
        records = json.load(f)

    if not isinstance(records, list):
        raise ValueError(f"Input must be a JSON array: {json_path}")

    gotchis = []
    rejected = []
    for idx, record in enumerate(records):
        try:
            gotchis.append(Gotchi.from_dict(record, id_key=id_key))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raw = record if isinstance(record, dict) else {}
            rejected.append(
                {
                    "index": idx,
                    "id": raw.get(id_key),
                    "attributes": raw.get("attributes"),
                    "error": f"Invalid gotchi record: {e!r}",
                }
            )

    return gotchis, rejected


def normalize_attributes(attributes: Sequence[Attribute]) -> List[Attribute]:
    """Move a mis-slotted Foxy Tail from the body slot to the pet slot.

    The tail is dropped instead when the gotchi already has a pet.
    """
    has_pet = any(
        attr.trait_type == PET_KEY and attr.value.strip() != "" for attr in attributes
    )

    normalized = []
    for attr in attributes:
        if attr.trait_type == BODY_KEY and attr.value == FOXY_TAIL:
            if has_pet:
                continue
            normalized.append(Attribute(PET_KEY, attr.value))
            has_pet = True
            continue
        normalized.append(attr)

    return normalized


def match_condition(attributes: Sequence[Attribute], condition_set: dict) -> bool:
    """Check whether every condition of a rule holds for the attributes.

    A condition with values requires each of its keys to carry one of those
    values (after collateral aliasing). A condition without values only
    requires each key to be present.
    """
    for condition in condition_set.get("keys_and_values") or []:
        keys = condition.get("keys") or []
        values = condition.get("values") or []

        for key in keys:
            if values:
                attr_values = [
                    alias(attr.value) for attr in attributes if attr.trait_type == key
                ]
                if not any(value in values for value in attr_values):
                    return False
            elif not any(attr.trait_type == key for attr in attributes):
                return False

    return True


def find_matching_config(
    attributes: Sequence[Attribute], config: dict
) -> Optional[dict]:
    """Return the first rule in configuration order that matches."""
    for condition_set in config.get("if_keys_and_values") or []:
        if match_condition(attributes, condition_set):
            return condition_set
    return None


def _hand_candidate(
    slot: str, hand_wearables: Sequence[Attribute]
) -> Optional[Attribute]:
    """Pick the hand wearable for a hand slot by declaration order.

    A lone hand wearable goes to the right hand.
    """
    if slot == LEFT_HAND_SLOT:
        return hand_wearables[0] if len(hand_wearables) > 1 else None
    if len(hand_wearables) > 1:
        return hand_wearables[1]
    if len(hand_wearables) == 1:
        return hand_wearables[0]
    return None


def _hand_folder(folder: str, slot: str) -> str:
    parts = folder.split("/")
    parts[-1] = slot
    return "/".join(parts)


def resolve_layers(
    attributes: Sequence[Attribute], condition_set: dict, verbose: bool = False
) -> List[SlotRequest]:
    """Map the fixed slot order to the attributes and folders to draw.

    Args:
        attributes: Normalized gotchi attributes
        condition_set: The matched rule, whose properties map trait keys to folders
        verbose: Print hand assignments

    Returns:
        Slot requests in compositing order, bottom layer first
    """
    property_map: Dict[str, dict] = {}
    for prop in condition_set.get("properties") or []:
        property_map[prop.get("key")] = prop

    hand_wearables = [attr for attr in attributes if attr.trait_type == HANDS_KEY]

    requests = []
    for slot, key in LAYERS:
        prop = property_map.get(key)
        if not prop or not prop.get("folder"):
            continue

        if key == HANDS_KEY:
            candidate = _hand_candidate(slot, hand_wearables)
            if candidate is None:
                continue
            matching = [candidate]
            folder = _hand_folder(prop["folder"], slot)
            if verbose:
                print(f"  Processing {slot}: {candidate.value} from {folder}")
        else:
            matching = [attr for attr in attributes if attr.trait_type == key]
            folder = prop["folder"]

        requests.extend(SlotRequest(slot, attr, folder) for attr in matching)

    return requests


def get_image_path(base_path, folder: str, trait_value: str) -> Optional[pathlib.Path]:
    """Find the sprite file for a trait value inside a sprite folder.

    Tries each known extension first, then falls back to a case-insensitive
    scan of the folder.
    """
    mapped_value = alias(trait_value)
    search_path = pathlib.Path(base_path).joinpath(*SPRITES_DIR, *folder.split("/"))

    for ext in IMAGE_EXTENSIONS:
        image_path = search_path / f"{mapped_value}{ext}"
        if image_path.exists():
            return image_path

    if search_path.is_dir():
        wanted = mapped_value.lower()
        for entry in sorted(search_path.iterdir()):
            if entry.is_file() and entry.stem.lower() == wanted:
                return entry

    return None


def load_layer(image_path) -> Tuple[Optional[Image.Image], Optional[str]]:
    """Decode an image file as RGBA without raising.

    Returns:
        ``(image, None)`` on success, ``(None, message)`` on failure
    """
    try:
        with Image.open(image_path) as img:
            return img.convert("RGBA"), None
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        return None, str(e) or e.__class__.__name__


def load_slot(
    base_path, request: SlotRequest, verbose: bool = False
) -> Optional[SlotOutcome]:
    """Locate and decode the sprite for one slot request.

    Returns None when the attribute has no value and no sprite, which is not
    worth reporting.
    """
    value = request.attribute.value
    image_path = get_image_path(base_path, request.folder, value)

    if image_path is None:
        if not value:
            return None
        entry = f"{request.slot}/{value} in {request.folder}"
        if verbose:
            print(f"    Missing image: {entry}")
        return Missing(entry)

    image, error = load_layer(image_path)
    if error is not None:
        entry = f"{request.slot}/{value}: {error}"
        if verbose:
            print(f"    Error loading: {entry}")
        return LoadError(entry)

    layer = ResolvedLayer(request.slot, str(image_path), request.label)
    if verbose:
        print(f"    Found and added: {layer.label} from {layer.source_path}")
    return Loaded(layer, image)


def composite_layers(images: Sequence[Image.Image]) -> Image.Image:
    """Stack layers bottom to top on a transparent canvas sized to the first one."""
    canvas = Image.new("RGBA", images[0].size, (0, 0, 0, 0))

    for img in images:
        if img.size != canvas.size:
            img = img.crop((0, 0) + canvas.size)
        canvas.alpha_composite(img)

    return canvas


def generate_spritesheet(
    gotchi: Gotchi,
    config: dict,
    base_path,
    output_folder,
    verbose: bool = False,
) -> GenerationResult:
    """Render one gotchi to ``{output_folder}/{id}.png``.

    Per-slot problems are collected in the result; only an empty composite or
    a failed write makes the result unsuccessful.

    Args:
        gotchi: The gotchi to render
        config: Loaded layer rules configuration
        base_path: Directory holding ``Trait Files/Sprites``
        output_folder: Directory to write the image into
        verbose: Print per-layer progress

    Returns:
        GenerationResult with the layers used and any diagnostics
    """
    attributes = normalize_attributes(gotchi.attributes)
    matching_config = find_matching_config(attributes, config)

    if matching_config is None:
        return GenerationResult(
            success=False,
            error=NO_MATCHING_CONFIG,
            layers_used=[attr.label for attr in attributes],
        )

    result = GenerationResult(success=False)
    images = []

    for request in resolve_layers(attributes, matching_config, verbose=verbose):
        outcome = load_slot(base_path, request, verbose=verbose)
        if isinstance(outcome, Loaded):
            images.append(outcome.image)
            result.layers_used.append(outcome.layer.label)
        elif isinstance(outcome, Missing):
            result.missing_images.append(outcome.entry)
        elif isinstance(outcome, LoadError):
            result.load_errors.append(outcome.entry)

    if not images:
        result.error = NO_LAYERS
        return result

    output_path = pathlib.Path(output_folder) / f"{gotchi.id}.png"
    try:
        composite_layers(images).save(output_path, format="PNG")
    except (OSError, ValueError) as e:
        result.error = f"Failed to save spritesheet: {e}"
        return result

    result.success = True
    return result
