"""
Sample breed images from the dog.ceo API.
"""

from typing import List, Optional

import requests

from ..common.config import API_CONFIG
from ..common.exceptions import NetworkError, ParseError


class DogImagesSource:
    """Fetches random image URLs of a breed and downloads their bytes."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = API_CONFIG["DOG_IMAGES_URL"],
        timeout: float = API_CONFIG["REQUEST_TIMEOUT"],
    ):
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def images_url(self, breed: str, sub_breed: str, count: int) -> str:
        """Build the endpoint, e.g. .../breed/hound/afghan/images/random/2."""
        parts = [self.base_url, breed.strip().lower()]
        if sub_breed.strip():
            parts.append(sub_breed.strip().lower().replace(" ", ""))
        parts.extend(["images", "random", str(count)])
        return "/".join(parts)

    def fetch_image_urls(self, breed: str, sub_breed: str, count: int) -> List[str]:
        """
        Request ``count`` random image URLs for a breed.

        Raises:
            NetworkError: If the request fails
            ParseError: If the body is not a successful dog.ceo response
        """
        response = self._get(self.images_url(breed, sub_breed, count))

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"dog.ceo returned invalid JSON: {e}") from e

        if not isinstance(data, dict) or data.get("status") != "success":
            raise ParseError(f"dog.ceo request for '{breed} {sub_breed}' was not successful")

        urls = data.get("message")
        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            raise ParseError("dog.ceo message is not a list of URLs")
        return urls

    def fetch_image_bytes(self, url: str) -> bytes:
        """Download one image."""
        content = self._get(url).content
        if not content:
            raise ParseError(f"Empty image body from {url}")
        return content

    def close(self) -> None:
        self.session.close()

    def _get(self, url: str) -> requests.Response:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e
        return response
