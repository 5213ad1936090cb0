from unittest.mock import MagicMock

import pytest
import requests

from breed_id.common.exceptions import NetworkError, ParseError
from breed_id.enrichment.wiki_api import WikiInfoSource


def make_response(payload=None, json_error=None, status_error=None):
    response = MagicMock()
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


SEARCH_PAYLOAD = {"query": {"search": [{"pageid": 1234, "title": "Afghan Hound"}]}}
EXTRACT_PAYLOAD = {
    "query": {
        "pages": {
            "1234": {
                "pageid": 1234,
                "extract": "The Afghan Hound is a hound distinguished by its thick coat.\n"
                "== History ==\nAncient breed.",
            }
        }
    }
}


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def source(session):
    return WikiInfoSource(session=session, max_sentences=7, timeout=3.0)


def test_fetch_info_two_step_lookup(source, session):
    session.get.side_effect = [make_response(SEARCH_PAYLOAD), make_response(EXTRACT_PAYLOAD)]

    info = source.fetch_info("Afghan Hound")

    # Only the summary before the first section title
    assert info == "The Afghan Hound is a hound distinguished by its thick coat."

    search_call, extract_call = session.get.call_args_list
    assert search_call.kwargs["params"]["srsearch"] == "Afghan_Hound_(dog)"
    assert search_call.kwargs["timeout"] == 3.0
    assert extract_call.kwargs["params"]["pageids"] == 1234
    assert extract_call.kwargs["params"]["exsentences"] == 7


def test_fetch_info_decodes_unicode(source, session):
    extract = {"query": {"pages": {"1234": {"extract": "Le Braque français."}}}}
    session.get.side_effect = [make_response(SEARCH_PAYLOAD), make_response(extract)]

    assert source.fetch_info("Braque Francais") == "Le Braque français."


def test_fetch_info_network_error(source, session):
    session.get.side_effect = requests.exceptions.ConnectionError("offline")

    with pytest.raises(NetworkError):
        source.fetch_info("Beagle")


def test_fetch_info_http_error(source, session):
    session.get.return_value = make_response(
        SEARCH_PAYLOAD, status_error=requests.exceptions.HTTPError("503")
    )

    with pytest.raises(NetworkError):
        source.fetch_info("Beagle")


@pytest.mark.parametrize(
    "search_response",
    [
        make_response({"query": {"search": []}}),
        make_response({"batchcomplete": ""}),
        make_response({"query": {"search": [{"title": "no id"}]}}),
        make_response(["not", "a", "dict"]),
        make_response(json_error=ValueError("Expecting value")),
    ],
)
def test_fetch_info_malformed_search(source, session, search_response):
    session.get.return_value = search_response

    with pytest.raises(ParseError):
        source.fetch_info("Beagle")


@pytest.mark.parametrize(
    "extract_payload",
    [
        {"query": {"pages": {"999": {"extract": "Wrong page"}}}},
        {"query": {"pages": {"1234": {"extract": ""}}}},
        {"query": {"pages": {"1234": {"extract": None}}}},
    ],
)
def test_fetch_info_malformed_extract(source, session, extract_payload):
    session.get.side_effect = [make_response(SEARCH_PAYLOAD), make_response(extract_payload)]

    with pytest.raises(ParseError):
        source.fetch_info("Afghan Hound")
