"""
Fan-out of enrichment jobs over a classification result.

Every breed gets two independent retry jobs: one for its description text and
one for a pair of sample images. Each job publishes its field group exactly
once and emits one BreedChangedEvent when it reaches a terminal state. A job
that gives up leaves placeholder content in place; failures never reach the
classification caller.
"""

import io
import logging
import threading
from typing import List, Optional, Tuple

from PIL import Image

from ..common.config import ENRICHMENT_CONFIG
from ..common.exceptions import EnrichmentError, ParseError, RetryExhausted
from ..concurrency.retry import Result, RetryExecutor, RetryJob
from ..pipeline.models import (
    Breed,
    BreedChangedEvent,
    BreedListener,
    ClassificationResult,
    EnrichmentStatus,
    ImageSource,
    TextInfoSource,
)
from ..pipeline.placeholders import default_image
from ..pipeline.ranker import split_breed_name

logger = logging.getLogger(__name__)

INFO_FIELD = "info"
IMAGES_FIELD = "images"


class EnrichmentCoordinator:
    """Schedules text and image jobs for every breed of a result."""

    # Primary and secondary image
    NUM_IMAGES = 2

    def __init__(
        self,
        info_source: TextInfoSource,
        image_source: ImageSource,
        executor: RetryExecutor,
        listener: Optional[BreedListener] = None,
        max_tries: int = ENRICHMENT_CONFIG["MAX_TRIES"],
        wait_between: float = ENRICHMENT_CONFIG["WAIT_BETWEEN"],
        default_info: str = ENRICHMENT_CONFIG["DEFAULT_INFO"],
        placeholder_image: Optional[Image.Image] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            info_source: Text-info boundary
            image_source: Image-source boundary
            executor: Executor shared by all jobs
            listener: Receives one event per finished job
            max_tries: Attempts per job, -1 for unlimited
            wait_between: Seconds between attempts of a job
            default_info: Text kept when the info job gives up
            placeholder_image: Image used for both slots when the images job
                gives up
        """
        self.info_source = info_source
        self.image_source = image_source
        self.executor = executor
        self.listener = listener
        self.max_tries = max_tries
        self.wait_between = wait_between
        self.default_info = default_info
        self.placeholder_image = placeholder_image or default_image()

    def enrich(
        self,
        result: ClassificationResult,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[RetryJob]:
        """
        Start both enrichment jobs for every breed in ``result``.

        Returns immediately. Once ``cancel_event`` is set, outcomes of the
        jobs are discarded: nothing is published and no events are emitted.

        Returns:
            The started jobs, two per breed in rank order
        """
        cancel_event = cancel_event or threading.Event()
        breeds = result.breeds
        result.expect_jobs(2 * len(breeds))

        jobs = []
        for index, breed in enumerate(breeds):
            jobs.append(self._start_info_job(result, index, breed, cancel_event))
            jobs.append(self._start_images_job(result, index, breed, cancel_event))

        logger.info(
            f"Started {len(jobs)} enrichment jobs for request {result.request_id}"
        )
        return jobs

    # --- Text info ---

    def _start_info_job(
        self,
        result: ClassificationResult,
        index: int,
        breed: Breed,
        cancel_event: threading.Event,
    ) -> RetryJob:
        name = breed.full_name

        def on_success(info: str) -> None:
            if cancel_event.is_set():
                return
            updated = result.publish(
                index, info_text=info, info_status=EnrichmentStatus.LOADED
            )
            self._emit(result, index, updated, INFO_FIELD)

        def on_exhausted(error: RetryExhausted) -> None:
            logger.warning(f"Giving up on info for '{name}': {error}")
            if cancel_event.is_set():
                return
            updated = result.publish(
                index,
                info_text=self.default_info,
                info_status=EnrichmentStatus.FAILED_DEFAULT,
            )
            self._emit(result, index, updated, INFO_FIELD)

        job = self.executor.start(
            task=lambda: self._fetch_info(name),
            on_success=on_success,
            on_error=self._log_failure(f"info for '{name}'"),
            on_exhausted=on_exhausted,
            max_tries=self.max_tries,
            wait_between=self.wait_between,
            cancel_event=cancel_event,
            name=f"info:{name}",
        )
        job.future.add_done_callback(lambda _: result.job_finished())
        return job

    def _fetch_info(self, full_name: str) -> Result[str]:
        try:
            return Result.success(self.info_source.fetch_info(full_name))
        except EnrichmentError as e:
            return Result.failure(e)

    # --- Images ---

    def _start_images_job(
        self,
        result: ClassificationResult,
        index: int,
        breed: Breed,
        cancel_event: threading.Event,
    ) -> RetryJob:
        api_breed, api_sub_breed = split_breed_name(breed.api_name)
        name = breed.full_name

        def on_success(images: Tuple[Image.Image, Image.Image]) -> None:
            if cancel_event.is_set():
                return
            primary, secondary = images
            updated = result.publish(
                index,
                primary_image=primary,
                secondary_image=secondary,
                images_status=EnrichmentStatus.LOADED,
            )
            self._emit(result, index, updated, IMAGES_FIELD)

        def on_exhausted(error: RetryExhausted) -> None:
            logger.warning(f"Giving up on images for '{name}': {error}")
            if cancel_event.is_set():
                return
            updated = result.publish(
                index,
                primary_image=self.placeholder_image,
                secondary_image=self.placeholder_image,
                images_status=EnrichmentStatus.FAILED_DEFAULT,
            )
            self._emit(result, index, updated, IMAGES_FIELD)

        job = self.executor.start(
            task=lambda: self._fetch_images(api_breed, api_sub_breed),
            on_success=on_success,
            on_error=self._log_failure(f"images for '{name}'"),
            on_exhausted=on_exhausted,
            max_tries=self.max_tries,
            wait_between=self.wait_between,
            cancel_event=cancel_event,
            name=f"images:{name}",
        )
        job.future.add_done_callback(lambda _: result.job_finished())
        return job

    def _fetch_images(
        self, breed: str, sub_breed: str
    ) -> Result[Tuple[Image.Image, Image.Image]]:
        """Both images must resolve or the whole attempt fails."""
        try:
            urls = self.image_source.fetch_image_urls(breed, sub_breed, self.NUM_IMAGES)
            if len(urls) != self.NUM_IMAGES:
                raise ParseError(
                    f"Expected {self.NUM_IMAGES} image URLs, got {len(urls)}"
                )
            primary, secondary = (
                self._decode_image(self.image_source.fetch_image_bytes(url))
                for url in urls
            )
        except EnrichmentError as e:
            return Result.failure(e)

        return Result.success((primary, secondary))

    @staticmethod
    def _decode_image(data: bytes) -> Image.Image:
        try:
            with Image.open(io.BytesIO(data)) as img:
                return img.convert("RGB")
        except OSError as e:
            raise ParseError(f"Could not decode image: {e}") from e

    # --- Shared ---

    def _log_failure(self, what: str):
        limit = "unlimited" if self.max_tries == -1 else self.max_tries

        def on_error(error: Exception, attempt: int) -> None:
            logger.warning(f"Loading {what} failed (attempt {attempt}/{limit}): {error}")

        return on_error

    def _emit(
        self, result: ClassificationResult, index: int, breed: Breed, field: str
    ) -> None:
        if self.listener is None:
            return

        event = BreedChangedEvent(
            request_id=result.request_id, index=index, breed=breed, field=field
        )
        try:
            self.listener.on_breed_changed(event)
        except Exception:
            logger.exception(f"Listener failed handling {field} update of '{breed.full_name}'")
