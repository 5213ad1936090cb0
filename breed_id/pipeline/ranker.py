"""
Conversion of a model confidence vector into ranked Breed records.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from ..common.constants import DEFAULT_INFO
from ..common.exceptions import LabelMismatchError
from .models import Breed, EnrichmentStatus
from .placeholders import default_image


def split_breed_name(name: str) -> Tuple[str, str]:
    """
    Split a breed-first label into breed and sub-breed.

    "Hound Afghan" -> ("Hound", "Afghan"); "Beagle" -> ("Beagle", "").
    """
    words = name.split()
    if not words:
        return "", ""
    return words[0], " ".join(words[1:])


class BreedRanker:
    """Builds Breed records from confidences and sorts them by confidence."""

    def __init__(
        self,
        default_info: str = DEFAULT_INFO,
        placeholder_image: Optional[Image.Image] = None,
    ):
        self.default_info = default_info
        self.placeholder_image = placeholder_image

    def rank(
        self,
        confidences: Sequence[float],
        labels: Sequence[str],
        api_labels: Optional[Sequence[str]] = None,
    ) -> List[Breed]:
        """
        Create one PENDING Breed per label, ordered by descending confidence.

        Ties keep label table order.

        Args:
            confidences: Model output, one value per label
            labels: Display label table
            api_labels: Label table matching the image API, index-aligned with
                ``labels``. Defaults to ``labels``.

        Returns:
            Ranked breeds; empty if the label table is empty

        Raises:
            LabelMismatchError: If the vector or tables differ in length
        """
        if api_labels is None:
            api_labels = labels

        scores = np.asarray(confidences, dtype=np.float64).reshape(-1)
        if len(api_labels) != len(labels):
            raise LabelMismatchError(len(api_labels), len(labels))
        if len(scores) != len(labels):
            raise LabelMismatchError(len(scores), len(labels))

        if len(labels) == 0:
            return []

        # Softmax outputs can drift marginally outside [0, 1]
        scores = np.clip(scores, 0.0, 1.0)
        placeholder = self.placeholder_image or default_image()

        order = np.argsort(-scores, kind="stable")
        breeds = []
        for idx in order:
            label, sub_label = split_breed_name(labels[idx])
            breeds.append(
                Breed(
                    label=label,
                    sub_label=sub_label,
                    confidence=float(scores[idx]),
                    display_name=labels[idx],
                    api_name=api_labels[idx],
                    info_text=self.default_info,
                    primary_image=placeholder,
                    secondary_image=placeholder,
                    info_status=EnrichmentStatus.PENDING,
                    images_status=EnrichmentStatus.PENDING,
                )
            )

        return breeds
