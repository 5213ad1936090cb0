"""
Placeholder images shown until (or instead of) enriched breed images.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from ..common.constants import DEFAULT_IMAGE_COLOR, IMAGE_SIZE


@lru_cache(maxsize=None)
def default_image() -> Image.Image:
    """Shared neutral grey placeholder."""
    return Image.new("RGB", (IMAGE_SIZE, IMAGE_SIZE), DEFAULT_IMAGE_COLOR)


def load_placeholder(path: Optional[Union[str, Path]] = None) -> Image.Image:
    """Load the placeholder asset at ``path``, or the generated one if None."""
    if path is None:
        return default_image()

    with Image.open(path) as img:
        return img.convert("RGB")
