"""
Label table loading for the breed classifier.

The shipped label files hold every label on a single comma-separated line,
index-aligned with the model's output vector. One label per line is accepted
as well.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .exceptions import LabelMismatchError

logger = logging.getLogger(__name__)


def load_labels(labels_path: Union[str, Path]) -> List[str]:
    """
    Read a label table from a CSV file.

    Args:
        labels_path: Path to the label file.

    Returns:
        Labels in file order, stripped, with empty entries dropped.
    """
    with open(labels_path, encoding="utf-8") as f:
        content = f.read()

    labels = []
    for line in content.splitlines():
        labels.extend(label.strip() for label in line.split(","))

    labels = [label for label in labels if label]
    logger.info(f"Loaded {len(labels)} labels from {labels_path}")
    return labels


def load_label_tables(
    labels_path: Union[str, Path],
    api_labels_path: Optional[Union[str, Path]] = None,
) -> Tuple[List[str], List[str]]:
    """
    Load the display and API-facing label tables.

    Args:
        labels_path: Display label file.
        api_labels_path: Label file matching the image API's naming. When
            omitted the display labels are used for both tables.

    Returns:
        (labels, api_labels), index-aligned and of equal length.
    """
    labels = load_labels(labels_path)
    if api_labels_path is None:
        return labels, list(labels)

    api_labels = load_labels(api_labels_path)
    if len(api_labels) != len(labels):
        raise LabelMismatchError(len(api_labels), len(labels))

    return labels, api_labels
