"""
Image preprocessing for the breed classifier.

Turns a fixed-size RGB image into the normalized channel-last tensor the
classifier expects. Resizing happens upstream; any other size is rejected.
"""

from typing import Union

import numpy as np
from PIL import Image

from ..common.constants import IMAGE_SIZE, NUM_CHANNELS
from ..common.exceptions import DimensionMismatchError

ImageInput = Union[Image.Image, np.ndarray]


class ImagePreprocessor:
    """Converts RGB images into (1, H, W, 3) float32 tensors in [0, 1]."""

    def __init__(self, image_size: int = IMAGE_SIZE):
        self.image_size = image_size

    def preprocess(self, image: ImageInput) -> np.ndarray:
        """
        Normalize an image into a model input tensor.

        Args:
            image: PIL image or uint8 array of shape (H, W, 3), RGB order

        Returns:
            C-contiguous float32 array of shape (1, H, W, 3), native byte
            order, as passed to the inference model

        Raises:
            DimensionMismatchError: If the image is not image_size x image_size
            ValueError: If an array is not uint8 with three channels
        """
        pixels = self._to_rgb_array(image)

        h, w = pixels.shape[:2]
        if (w, h) != (self.image_size, self.image_size):
            raise DimensionMismatchError(
                expected=(self.image_size, self.image_size), actual=(w, h)
            )

        img_fp = pixels.astype(np.float32) / 255.0
        return np.ascontiguousarray(np.expand_dims(img_fp, axis=0))

    def _to_rgb_array(self, image: ImageInput) -> np.ndarray:
        if isinstance(image, Image.Image):
            if image.mode != "RGB":
                image = image.convert("RGB")
            return np.asarray(image, dtype=np.uint8)

        pixels = np.asarray(image)
        if pixels.ndim != 3 or pixels.shape[2] != NUM_CHANNELS:
            raise ValueError(
                f"Expected an (H, W, {NUM_CHANNELS}) RGB array, got shape {pixels.shape}"
            )
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels in [0, 255], got dtype {pixels.dtype}")
        return pixels
