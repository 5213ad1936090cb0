"""
Breed classification and the request-scoped identification pipeline.

BreedClassifier runs the synchronous stages (preprocess, infer, rank).
BreedIdentificationPipeline adds background enrichment on top, cancelling the
jobs of a request as soon as a newer request supersedes it.
"""

import itertools
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from ..common.config import load_config
from ..common.exceptions import InferenceError, LabelMismatchError
from ..common.labels import load_label_tables
from ..concurrency.retry import RetryExecutor
from ..enrichment.coordinator import EnrichmentCoordinator
from ..enrichment.dog_images_api import DogImagesSource
from ..enrichment.wiki_api import WikiInfoSource
from .models import (
    BreedListener,
    ClassificationResult,
    ImageSource,
    InferenceModel,
    TextInfoSource,
)
from .placeholders import load_placeholder
from .preprocessing import ImageInput, ImagePreprocessor
from .ranker import BreedRanker

logger = logging.getLogger(__name__)


class BreedClassifier:
    """Classifies a 256x256 RGB image into ranked breeds."""

    def __init__(
        self,
        model: InferenceModel,
        labels: Sequence[str],
        api_labels: Optional[Sequence[str]] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
        ranker: Optional[BreedRanker] = None,
    ):
        """
        Initialize the classifier.

        Args:
            model: Inference model producing one confidence per label
            labels: Display label table
            api_labels: Image API label table, index-aligned with ``labels``
            preprocessor: Image preprocessor (default 256x256)
            ranker: Breed ranker (default placeholders)
        """
        self.model = model
        self.labels = list(labels)
        self.api_labels = list(api_labels) if api_labels is not None else list(labels)
        if len(self.api_labels) != len(self.labels):
            raise LabelMismatchError(len(self.api_labels), len(self.labels))

        self.preprocessor = preprocessor or ImagePreprocessor()
        self.ranker = ranker or BreedRanker()

    def classify(self, image: ImageInput, request_id: int = 0) -> ClassificationResult:
        """
        Run preprocessing, inference and ranking.

        Raises:
            DimensionMismatchError: Wrong input size
            InferenceError: The model failed or returned an unusable vector
            LabelMismatchError: Vector length differs from the label table
        """
        tensor = self.preprocessor.preprocess(image)
        confidences = self._infer(tensor)

        if len(confidences) != len(self.labels):
            logger.error(
                f"Model returned {len(confidences)} confidences for {len(self.labels)} labels"
            )
            raise LabelMismatchError(len(confidences), len(self.labels))

        breeds = self.ranker.rank(confidences, self.labels, self.api_labels)
        if breeds:
            logger.info(
                f"Request {request_id}: top breed '{breeds[0].full_name}' "
                f"({breeds[0].confidence:.3f})"
            )
        return ClassificationResult(breeds, request_id=request_id)

    def _infer(self, tensor: np.ndarray) -> np.ndarray:
        try:
            output = self.model.predict(tensor)
        except InferenceError:
            raise
        except Exception as e:
            logger.error(f"Model inference failed: {e}")
            raise InferenceError(f"Model inference failed: {e}") from e

        confidences = np.asarray(output, dtype=np.float64)
        if confidences.ndim == 2 and confidences.shape[0] == 1:
            confidences = confidences[0]
        if confidences.ndim != 1:
            raise InferenceError(
                f"Expected a confidence vector, got shape {confidences.shape}"
            )
        if not np.all(np.isfinite(confidences)):
            raise InferenceError("Model returned non-finite confidences")
        return confidences


class BreedIdentificationPipeline:
    """
    Classification plus background enrichment, one request at a time.

    Owns a RetryExecutor; call close() (or use as a context manager) to stop
    outstanding jobs and release the worker pool.
    """

    def __init__(
        self,
        classifier: BreedClassifier,
        info_source: TextInfoSource,
        image_source: ImageSource,
        listener: Optional[BreedListener] = None,
        enrichment_config: Optional[Dict[str, Any]] = None,
        owns_sources: bool = False,
    ):
        """
        Initialize the pipeline.

        Args:
            classifier: Synchronous classification stages
            info_source: Breed description source
            image_source: Breed sample image source
            listener: Receives one event per finished enrichment job
            enrichment_config: Overrides for the enrichment config section
            owns_sources: Close both sources when the pipeline is closed
        """
        config = load_config()["enrichment"]
        config.update(enrichment_config or {})

        self.classifier = classifier
        self.info_source = info_source
        self.image_source = image_source
        self.owns_sources = owns_sources
        self.executor = RetryExecutor(max_workers=config["MAX_WORKERS"])
        self.coordinator = EnrichmentCoordinator(
            info_source=info_source,
            image_source=image_source,
            executor=self.executor,
            listener=listener,
            max_tries=config["MAX_TRIES"],
            wait_between=config["WAIT_BETWEEN"],
            default_info=config["DEFAULT_INFO"],
            placeholder_image=load_placeholder(config["DEFAULT_IMAGE_PATH"]),
        )

        self._lock = threading.Lock()
        self._request_ids = itertools.count(1)
        self._current_cancel: Optional[threading.Event] = None
        self._closed = False

    @classmethod
    def from_paths(
        cls,
        model_path: Union[str, Path],
        labels_path: Union[str, Path],
        api_labels_path: Optional[Union[str, Path]] = None,
        config_path: Optional[Union[str, Path]] = None,
        listener: Optional[BreedListener] = None,
    ) -> "BreedIdentificationPipeline":
        """Build a pipeline around an ONNX model and the live web sources."""
        from .onnx_models import ONNXBreedModel

        config = load_config(config_path)
        labels, api_labels = load_label_tables(labels_path, api_labels_path)
        api = config["api"]

        classifier = BreedClassifier(
            model=ONNXBreedModel(str(model_path)),
            labels=labels,
            api_labels=api_labels,
            preprocessor=ImagePreprocessor(config["classifier"]["IMAGE_SIZE"]),
            ranker=BreedRanker(
                default_info=config["enrichment"]["DEFAULT_INFO"],
                placeholder_image=load_placeholder(
                    config["enrichment"]["DEFAULT_IMAGE_PATH"]
                ),
            ),
        )
        return cls(
            classifier=classifier,
            info_source=WikiInfoSource(
                search_url=api["WIKI_SEARCH_URL"],
                extract_url=api["WIKI_EXTRACT_URL"],
                max_sentences=api["MAX_SENTENCES"],
                timeout=api["REQUEST_TIMEOUT"],
            ),
            image_source=DogImagesSource(
                base_url=api["DOG_IMAGES_URL"], timeout=api["REQUEST_TIMEOUT"]
            ),
            listener=listener,
            enrichment_config=config["enrichment"],
            owns_sources=True,
        )

    def identify(self, image: ImageInput, enrich: bool = True) -> ClassificationResult:
        """
        Classify an image and start enriching the ranked breeds.

        Supersedes the previous request: its outstanding jobs are cancelled
        and their late results discarded.

        Returns:
            Ranked result; enrichment updates arrive through the listener and
            ``result.wait_enriched()``
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Pipeline is closed")
            self._cancel_current()
            cancel_event = threading.Event()
            self._current_cancel = cancel_event
            request_id = next(self._request_ids)

        result = self.classifier.classify(image, request_id=request_id)
        if not enrich:
            return result

        # enrich() only submits jobs, so holding the lock keeps close() from
        # shutting the executor down in between
        with self._lock:
            if self._closed:
                logger.info(f"Request {request_id}: pipeline closed, skipping enrichment")
                return result
            self.coordinator.enrich(result, cancel_event=cancel_event)
        return result

    def cancel(self) -> None:
        """Cancel the enrichment jobs of the current request."""
        with self._lock:
            self._cancel_current()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._cancel_current()
        self.executor.shutdown(wait=True)
        if self.owns_sources:
            self.info_source.close()
            self.image_source.close()

    def __enter__(self) -> "BreedIdentificationPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _cancel_current(self) -> None:
        if self._current_cancel is not None:
            self._current_cancel.set()
            self._current_cancel = None
