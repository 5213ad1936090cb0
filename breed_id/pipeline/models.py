"""
Data model and boundary protocols for the breed identification pipeline.

Defines the Breed record, the ordered classification result that publishes
enrichment updates as whole snapshots, and interfaces for the inference
model, the text and image sources, and result listeners.
"""

import dataclasses
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List, Optional, Protocol, Sequence, Tuple

import numpy as np
from PIL import Image


class EnrichmentStatus(Enum):
    """Enrichment state of a breed or one of its field groups."""

    PENDING = "pending"
    LOADED = "loaded"
    FAILED_DEFAULT = "failed_default"


@dataclass(frozen=True)
class Breed:
    """
    One ranked classification candidate.

    Instances are immutable. Enrichment replaces the whole record inside its
    ClassificationResult, so a reader never observes a half-written breed.
    """

    label: str
    sub_label: str
    confidence: float
    display_name: str
    api_name: str
    info_text: str
    primary_image: Image.Image
    secondary_image: Image.Image
    info_status: EnrichmentStatus = EnrichmentStatus.PENDING
    images_status: EnrichmentStatus = EnrichmentStatus.PENDING

    @property
    def full_name(self) -> str:
        """Human readable name, sub-breed first (e.g. "Afghan Hound")."""
        return f"{self.sub_label} {self.label}".strip()

    @property
    def enrichment_status(self) -> EnrichmentStatus:
        """Combined status of the text and image field groups."""
        statuses = (self.info_status, self.images_status)
        if EnrichmentStatus.FAILED_DEFAULT in statuses:
            return EnrichmentStatus.FAILED_DEFAULT
        if all(s == EnrichmentStatus.LOADED for s in statuses):
            return EnrichmentStatus.LOADED
        return EnrichmentStatus.PENDING


@dataclass(frozen=True)
class BreedChangedEvent:
    """Emitted once per enrichment job when it reaches a terminal state."""

    request_id: int
    index: int
    breed: Breed
    field: str  # "info" or "images"


class ClassificationResult:
    """
    Ordered breeds of one classification request.

    Ordering is fixed at construction (confidence descending). Enrichment
    jobs publish new Breed snapshots by index under a lock; readers get
    consistent copies.
    """

    def __init__(self, breeds: Sequence[Breed], request_id: int = 0):
        self.request_id = request_id
        self._breeds: List[Breed] = list(breeds)
        self._lock = threading.Lock()
        self._jobs_done = threading.Condition(self._lock)
        self._pending_jobs = 0

    @property
    def breeds(self) -> Tuple[Breed, ...]:
        with self._lock:
            return tuple(self._breeds)

    def __len__(self) -> int:
        return len(self._breeds)

    def __getitem__(self, index: int) -> Breed:
        with self._lock:
            return self._breeds[index]

    def __iter__(self) -> Iterator[Breed]:
        return iter(self.breeds)

    def top(self, k: int) -> Tuple[Breed, ...]:
        """Return the k most confident breeds."""
        return self.breeds[:k]

    def publish(self, index: int, **changes: Any) -> Breed:
        """
        Atomically replace the breed at ``index`` with an updated copy.

        Args:
            index: Position in the ranked result
            **changes: Breed fields to replace

        Returns:
            The new Breed snapshot
        """
        with self._lock:
            updated = dataclasses.replace(self._breeds[index], **changes)
            self._breeds[index] = updated
            return updated

    def expect_jobs(self, count: int) -> None:
        """Register enrichment jobs that must finish before wait_enriched returns."""
        with self._lock:
            self._pending_jobs += count

    def job_finished(self) -> None:
        with self._jobs_done:
            self._pending_jobs -= 1
            if self._pending_jobs <= 0:
                self._jobs_done.notify_all()

    def wait_enriched(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every registered enrichment job reached a terminal state.

        Returns:
            True if all jobs finished, False on timeout
        """
        with self._jobs_done:
            return self._jobs_done.wait_for(
                lambda: self._pending_jobs <= 0, timeout=timeout
            )


class InferenceModel(Protocol):
    """Protocol for breed classification models."""

    def predict(self, tensor: np.ndarray) -> np.ndarray:
        """
        Classify a preprocessed image tensor.

        Args:
            tensor: Normalized float32 tensor of shape (1, 256, 256, 3)

        Returns:
            Confidence vector with one entry per label
        """
        ...


class TextInfoSource(Protocol):
    """Protocol for sources of short breed descriptions."""

    def fetch_info(self, full_breed_name: str) -> str:
        """
        Fetch a plain-text summary for a breed.

        Raises:
            NetworkError: On transport or HTTP failures
            ParseError: On malformed responses
        """
        ...


class ImageSource(Protocol):
    """Protocol for sources of sample breed images."""

    def fetch_image_urls(self, breed: str, sub_breed: str, count: int) -> List[str]:
        """Return up to ``count`` random image URLs for the breed."""
        ...

    def fetch_image_bytes(self, url: str) -> bytes:
        """Download the raw bytes of one image."""
        ...


class BreedListener(Protocol):
    """Protocol for consumers of asynchronous breed updates."""

    def on_breed_changed(self, event: BreedChangedEvent) -> None:
        ...
