import io
import threading

import numpy as np
import pytest
from PIL import Image

from breed_id.common.exceptions import NetworkError
from breed_id.concurrency.retry import RetryExecutor


@pytest.fixture
def sample_image():
    """A random 256x256 RGB image."""
    img_array = np.random.randint(0, 256, (256, 256, 3), dtype=np.uint8)
    return Image.fromarray(img_array)


@pytest.fixture
def jpeg_bytes():
    """Encoded bytes of a small JPEG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (32, 24), (10, 120, 200)).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def executor():
    """Retry executor that is shut down after the test."""
    executor = RetryExecutor(max_workers=4)
    yield executor
    executor.shutdown(wait=True)


class RecordingListener:
    """Collects BreedChangedEvents from worker threads."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def on_breed_changed(self, event):
        with self._lock:
            self.events.append(event)

    def fields_for(self, index):
        with self._lock:
            return sorted(e.field for e in self.events if e.index == index)


@pytest.fixture
def listener():
    return RecordingListener()


class FakeImageSource:
    """Image source returning fixed URLs and bytes, failing on demand."""

    def __init__(self, image_bytes, urls=None, failures=0):
        self.image_bytes = image_bytes
        self.urls = urls if urls is not None else ["http://img/1.jpg", "http://img/2.jpg"]
        self.failures = failures
        self.url_calls = []
        self.byte_calls = []
        self._lock = threading.Lock()

    def fetch_image_urls(self, breed, sub_breed, count):
        with self._lock:
            self.url_calls.append((breed, sub_breed, count))
            if self.failures > 0:
                self.failures -= 1
                raise NetworkError("dog.ceo unreachable")
        return list(self.urls)

    def fetch_image_bytes(self, url):
        with self._lock:
            self.byte_calls.append(url)
        return self.image_bytes


@pytest.fixture
def image_source(jpeg_bytes):
    return FakeImageSource(jpeg_bytes)
