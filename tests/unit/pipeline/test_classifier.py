from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image

from breed_id.common.exceptions import (
    DimensionMismatchError,
    InferenceError,
    LabelMismatchError,
)
from breed_id.pipeline.classifier import BreedClassifier
from breed_id.pipeline.models import ClassificationResult


@pytest.fixture
def mock_model():
    model = MagicMock()
    model.predict.return_value = np.array([0.3, 0.7], dtype=np.float32)
    return model


@pytest.fixture
def classifier(mock_model):
    return BreedClassifier(model=mock_model, labels=["Beagle", "Hound Afghan"])


def test_classify_basic_flow(classifier, sample_image):
    """Preprocess -> infer -> rank."""
    result = classifier.classify(sample_image, request_id=7)

    assert isinstance(result, ClassificationResult)
    assert result.request_id == 7
    assert [(b.label, b.sub_label) for b in result] == [("Hound", "Afghan"), ("Beagle", "")]
    assert result[0].confidence == pytest.approx(0.7)

    # Model receives the preprocessed tensor
    args, _ = classifier.model.predict.call_args
    assert args[0].shape == (1, 256, 256, 3)
    assert args[0].dtype == np.float32


def test_classify_accepts_batched_output(classifier, sample_image):
    classifier.model.predict.return_value = np.array([[0.9, 0.1]])

    result = classifier.classify(sample_image)

    assert result[0].label == "Beagle"


def test_classify_wrong_dimensions_never_infers(classifier):
    with pytest.raises(DimensionMismatchError):
        classifier.classify(Image.new("RGB", (100, 100)))

    classifier.model.predict.assert_not_called()


def test_classify_wraps_model_errors(classifier, sample_image):
    classifier.model.predict.side_effect = RuntimeError("model crashed")

    with pytest.raises(InferenceError) as exc_info:
        classifier.classify(sample_image)

    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.parametrize(
    "output",
    [np.array([np.nan, 0.5]), np.zeros((2, 2)), np.array([np.inf, 0.0])],
)
def test_classify_rejects_unusable_output(classifier, sample_image, output):
    classifier.model.predict.return_value = output

    with pytest.raises(InferenceError):
        classifier.classify(sample_image)


def test_classify_label_mismatch_is_fatal(mock_model, sample_image):
    """Label table of 5 and vector of 4: fails before building any breed."""
    mock_model.predict.return_value = np.full(4, 0.25)
    ranker = MagicMock()
    classifier = BreedClassifier(
        model=mock_model, labels=["A", "B", "C", "D", "E"], ranker=ranker
    )

    with pytest.raises(LabelMismatchError):
        classifier.classify(sample_image)

    ranker.rank.assert_not_called()


def test_mismatched_label_tables_rejected(mock_model):
    with pytest.raises(LabelMismatchError):
        BreedClassifier(model=mock_model, labels=["A", "B"], api_labels=["a"])


def test_classify_empty_label_table(sample_image):
    model = MagicMock()
    model.predict.return_value = np.array([], dtype=np.float32)

    result = BreedClassifier(model=model, labels=[]).classify(sample_image)

    assert len(result) == 0
