"""
Breed descriptions from the Wikipedia API.

Looking up a breed takes two requests: a search for the most relevant page,
then a plain-text extract of that page's introduction.
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..common.config import API_CONFIG
from ..common.exceptions import NetworkError, ParseError

logger = logging.getLogger(__name__)


class WikiInfoSource:
    """Fetches short plain-text breed summaries from Wikipedia."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        search_url: str = API_CONFIG["WIKI_SEARCH_URL"],
        extract_url: str = API_CONFIG["WIKI_EXTRACT_URL"],
        max_sentences: int = API_CONFIG["MAX_SENTENCES"],
        timeout: float = API_CONFIG["REQUEST_TIMEOUT"],
    ):
        self.session = session or requests.Session()
        self.search_url = search_url
        self.extract_url = extract_url
        self.max_sentences = max_sentences
        self.timeout = timeout

    def fetch_info(self, full_breed_name: str) -> str:
        """
        Return the introduction of the breed's Wikipedia article.

        Args:
            full_breed_name: Human readable breed name (e.g. "Afghan Hound")

        Returns:
            Summary text up to the first section break

        Raises:
            NetworkError: If a request fails
            ParseError: If no page is found or a response is malformed
        """
        search = self._get_json(
            self.search_url,
            {
                "action": "query",
                "format": "json",
                "list": "search",
                "srsearch": self._format_breed_name(full_breed_name),
            },
        )
        page_id = self._page_id_from_search(search, full_breed_name)

        extract = self._get_json(
            self.extract_url,
            {
                "action": "query",
                "format": "json",
                "prop": "extracts",
                "exsentences": self.max_sentences,
                "explaintext": "true",
                "pageids": page_id,
            },
        )
        return self._info_from_extract(extract, page_id)

    def close(self) -> None:
        self.session.close()

    @staticmethod
    def _format_breed_name(breed: str) -> str:
        # Biases the search toward the dog article over namesakes
        return breed.strip().replace(" ", "_") + "_(dog)"

    def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Wikipedia request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"Wikipedia returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ParseError("Wikipedia response is not a JSON object")
        return data

    @staticmethod
    def _page_id_from_search(data: Dict[str, Any], breed: str) -> int:
        try:
            hits = data["query"]["search"]
        except (KeyError, TypeError) as e:
            raise ParseError(f"Malformed Wikipedia search response: missing {e}") from e

        if not hits:
            raise ParseError(f"No Wikipedia page found for '{breed}'")

        try:
            return int(hits[0]["pageid"])
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Malformed Wikipedia search hit: {e}") from e

    @staticmethod
    def _info_from_extract(data: Dict[str, Any], page_id: int) -> str:
        try:
            extract = data["query"]["pages"][str(page_id)]["extract"]
        except (KeyError, TypeError) as e:
            raise ParseError(f"Malformed Wikipedia extract response: missing {e}") from e

        if not isinstance(extract, str):
            raise ParseError("Wikipedia extract is not text")

        # Only the summary before the first section title
        info = extract.split("\n", 1)[0].strip()
        if not info:
            raise ParseError(f"Wikipedia page {page_id} has an empty extract")
        return info
