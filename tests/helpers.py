"""Sprite library builders shared by the test modules."""

import pathlib

from PIL import Image

from spritesheet import Attribute

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
CLEAR = (0, 0, 0, 0)


def attrs(*pairs):
    return [Attribute(trait_type, value) for trait_type, value in pairs]


def make_sprite(base_path, folder, filename, color=RED, size=(4, 4), pixels=None):
    """Write a sprite into ``Trait Files/Sprites/<folder>/<filename>``.

    ``pixels`` maps (x, y) to a color on an otherwise transparent image;
    without it the whole image is filled with ``color``.
    """
    path = pathlib.Path(base_path, "Trait Files", "Sprites", *folder.split("/"))
    path.mkdir(parents=True, exist_ok=True)

    if pixels is None:
        img = Image.new("RGBA", size, color)
    else:
        img = Image.new("RGBA", size, CLEAR)
        for xy, pixel_color in pixels.items():
            img.putpixel(xy, pixel_color)

    sprite_path = path / filename
    img.save(sprite_path, format="PNG")
    return sprite_path
