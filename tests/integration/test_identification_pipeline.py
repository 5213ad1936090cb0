"""
End-to-end test of classification plus enrichment with in-memory boundaries.
"""

import threading
from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image

from breed_id.common.exceptions import DimensionMismatchError, NetworkError
from breed_id.pipeline.classifier import BreedClassifier, BreedIdentificationPipeline
from breed_id.pipeline.models import EnrichmentStatus


@pytest.fixture
def classifier():
    model = MagicMock()
    model.predict.return_value = np.array([0.3, 0.7], dtype=np.float32)
    return BreedClassifier(model=model, labels=["Beagle", "Hound Afghan"])


@pytest.fixture
def info_source():
    source = MagicMock()
    source.fetch_info.side_effect = lambda name: f"About {name}"
    return source


@pytest.fixture
def pipeline(classifier, info_source, image_source, listener):
    pipeline = BreedIdentificationPipeline(
        classifier=classifier,
        info_source=info_source,
        image_source=image_source,
        listener=listener,
        enrichment_config={"MAX_TRIES": 2, "WAIT_BETWEEN": 0.0, "MAX_WORKERS": 4},
    )
    yield pipeline
    pipeline.close()


def test_identify_ranks_then_enriches(pipeline, listener, sample_image):
    result = pipeline.identify(sample_image)

    # Ranking is available synchronously
    assert [b.full_name for b in result] == ["Afghan Hound", "Beagle"]

    assert result.wait_enriched(timeout=5)
    assert [b.enrichment_status for b in result] == [EnrichmentStatus.LOADED] * 2
    assert result[0].info_text == "About Afghan Hound"
    assert len(listener.events) == 4


def test_all_enrichment_failing_still_succeeds(pipeline, info_source, image_source, sample_image):
    info_source.fetch_info.side_effect = NetworkError("down")
    image_source.failures = 100

    result = pipeline.identify(sample_image)

    assert result.wait_enriched(timeout=5)
    assert [b.confidence for b in result] == pytest.approx([0.7, 0.3])
    assert all(b.enrichment_status == EnrichmentStatus.FAILED_DEFAULT for b in result)


def test_fatal_error_before_any_job(pipeline, info_source):
    with pytest.raises(DimensionMismatchError):
        pipeline.identify(Image.new("RGB", (64, 64)))

    info_source.fetch_info.assert_not_called()


def test_new_request_supersedes_old(pipeline, info_source, listener, sample_image):
    release = threading.Event()

    def slow_info(name):
        release.wait(5)
        return f"About {name}"

    info_source.fetch_info.side_effect = slow_info
    first = pipeline.identify(sample_image)
    second = pipeline.identify(sample_image)
    release.set()

    assert first.wait_enriched(timeout=5)
    assert second.wait_enriched(timeout=5)

    assert second.request_id > first.request_id
    assert second[0].info_text == "About Afghan Hound"
    assert second[0].info_status == EnrichmentStatus.LOADED
    # Stale text results of the first request were discarded
    assert all(b.info_status == EnrichmentStatus.PENDING for b in first)
    stale = [e for e in listener.events if e.request_id == first.request_id and e.field == "info"]
    assert stale == []


def test_identify_without_enrichment(pipeline, info_source, sample_image):
    result = pipeline.identify(sample_image, enrich=False)

    assert result.wait_enriched(timeout=0)
    assert result[0].enrichment_status == EnrichmentStatus.PENDING
    info_source.fetch_info.assert_not_called()


def test_closed_pipeline_rejects_requests(pipeline, sample_image):
    pipeline.close()
    pipeline.close()  # Idempotent

    with pytest.raises(RuntimeError):
        pipeline.identify(sample_image)


def test_close_during_classification_keeps_result(
    classifier, info_source, image_source, sample_image
):
    pipeline = BreedIdentificationPipeline(
        classifier=classifier, info_source=info_source, image_source=image_source
    )

    def predict_then_close(tensor):
        pipeline.close()
        return np.array([0.3, 0.7], dtype=np.float32)

    classifier.model.predict.side_effect = predict_then_close

    result = pipeline.identify(sample_image)

    assert [b.full_name for b in result] == ["Afghan Hound", "Beagle"]
    assert result.wait_enriched(timeout=0)
    assert all(b.enrichment_status == EnrichmentStatus.PENDING for b in result)
    info_source.fetch_info.assert_not_called()


def test_close_releases_owned_sources(classifier):
    info_source, image_source = MagicMock(), MagicMock()
    pipeline = BreedIdentificationPipeline(
        classifier=classifier,
        info_source=info_source,
        image_source=image_source,
        owns_sources=True,
    )

    pipeline.close()
    pipeline.close()

    info_source.close.assert_called_once()
    image_source.close.assert_called_once()


def test_close_leaves_injected_sources_open(classifier):
    info_source, image_source = MagicMock(), MagicMock()
    pipeline = BreedIdentificationPipeline(
        classifier=classifier, info_source=info_source, image_source=image_source
    )

    pipeline.close()

    info_source.close.assert_not_called()
    image_source.close.assert_not_called()
