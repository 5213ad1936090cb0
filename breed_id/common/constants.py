#!/usr/bin/env python
"""
Shared constants for the breed_id project.

This file contains common paths and configuration values that are used across
different modules (classification, enrichment, scripts) to ensure consistency.
"""

from pathlib import Path

# --- Core Paths ---
PROJECT_ROOT = Path(__file__).resolve().parents[2]
MODELS_DIR = PROJECT_ROOT / "models"
ASSETS_DIR = PROJECT_ROOT / "assets"

# --- Classifier Assets ---
ONNX_CLASSIFIER_PATH = MODELS_DIR / "onnx" / "breed_classifier.onnx"
LABELS_PATH = ASSETS_DIR / "labels.csv"
API_LABELS_PATH = ASSETS_DIR / "api_labels.csv"

# --- Model Input ---
IMAGE_SIZE = 256
NUM_CHANNELS = 3

# --- Placeholders ---
DEFAULT_INFO = "Loading..."
DEFAULT_IMAGE_COLOR = (200, 200, 200)
