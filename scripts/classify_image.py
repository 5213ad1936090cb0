#!/usr/bin/env python
"""
Classify a dog photo and print the ranked breeds with their enrichment.

1. Loads the image with OpenCV and resizes it to the model input size
2. Runs the ONNX breed classifier and prints the top-k breeds
3. Waits for the Wikipedia and dog.ceo enrichment jobs to finish
4. Prints each top breed's description and image status
"""

import argparse
import logging
import sys
from pathlib import Path

import cv2

from breed_id.common.constants import (
    API_LABELS_PATH,
    IMAGE_SIZE,
    LABELS_PATH,
    ONNX_CLASSIFIER_PATH,
)
from breed_id.common.config import CLASSIFIER_CONFIG
from breed_id.common.exceptions import BreedIdError
from breed_id.pipeline.classifier import BreedIdentificationPipeline
from breed_id.pipeline.models import BreedChangedEvent


class PrintingListener:
    """Reports each finished enrichment job."""

    def on_breed_changed(self, event: BreedChangedEvent) -> None:
        breed = event.breed
        status = breed.info_status if event.field == "info" else breed.images_status
        print(f"  [update] {breed.full_name}: {event.field} -> {status.value}")


def load_image(image_path: Path, size: int):
    """Load an image as RGB and resize it to size x size."""
    image = cv2.imread(str(image_path))
    if image is None:
        raise FileNotFoundError(f"Could not read image: {image_path}")
    image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return cv2.resize(image, (size, size), interpolation=cv2.INTER_AREA)


def main(args):
    """Main classification function."""
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    image_path = Path(args.image_path)
    if not image_path.exists():
        print(f"[ERROR] Image not found at: {image_path}")
        sys.exit(1)

    api_labels = Path(args.api_labels) if args.api_labels else None
    pipeline = BreedIdentificationPipeline.from_paths(
        model_path=args.model,
        labels_path=args.labels,
        api_labels_path=api_labels if api_labels and api_labels.exists() else None,
        config_path=args.config,
        listener=PrintingListener(),
    )

    with pipeline:
        try:
            result = pipeline.identify(load_image(image_path, IMAGE_SIZE))
        except BreedIdError as e:
            print(f"[ERROR] Classification failed: {e}")
            sys.exit(1)

        print("\n--- Ranked breeds ---")
        for rank, breed in enumerate(result.top(args.top_k), start=1):
            print(f"{rank:2d}. {breed.full_name:<30} {breed.confidence * 100:6.2f}%")

        print("\nWaiting for enrichment...")
        if not result.wait_enriched(timeout=args.timeout):
            print("[WARN] Enrichment did not finish in time")

        print("\n--- Breed details ---")
        for breed in result.top(args.top_k):
            print(f"\n{breed.full_name} ({breed.enrichment_status.value})")
            print(f"  {breed.info_text}")
            print(
                f"  images: {breed.images_status.value} "
                f"{breed.primary_image.size} / {breed.secondary_image.size}"
            )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Classify the breed of a dog photo.")
    parser.add_argument("image_path", type=str, help="Path to the dog photo.")
    parser.add_argument("--model", type=str, default=str(ONNX_CLASSIFIER_PATH))
    parser.add_argument("--labels", type=str, default=str(LABELS_PATH))
    parser.add_argument("--api-labels", type=str, default=str(API_LABELS_PATH))
    parser.add_argument("--config", type=str, default=None, help="Optional YAML config.")
    parser.add_argument("--top-k", type=int, default=CLASSIFIER_CONFIG["TOP_K"])
    parser.add_argument("--timeout", type=float, default=60.0)
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    main(parser.parse_args())
