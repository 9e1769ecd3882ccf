import pytest
import requests

from mapexplorer.collectors.osm.api_client import OverpassAPIClient
from mapexplorer.config import ExplorerConfig
from mapexplorer.errors import ExplorerError, MalformedResponseError, NetworkError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def _send(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._send("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._send("GET", url, **kwargs)

    def close(self):
        self.closed = True


QUERY = '[out:json][timeout:60];\n(\n  nwr["natural"="water"](51.5,-0.13,51.51,-0.12);\n);\nout geom;'


def make_client(session):
    return OverpassAPIClient(ExplorerConfig(), session=session)


def test_post_sends_query_as_form_field():
    session = FakeSession(FakeResponse(payload={"elements": []}))
    data = make_client(session).query(QUERY)

    assert data == {"elements": []}
    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://overpass-api.de/api/interpreter"
    assert kwargs["data"] == {"data": QUERY}
    assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
    assert "User-Agent" in kwargs["headers"]


def test_get_sends_query_as_parameter():
    session = FakeSession(FakeResponse(payload={"elements": [{"type": "node", "id": 1}]}))
    data = make_client(session).query(QUERY, method="get")

    assert len(data["elements"]) == 1
    method, _, kwargs = session.calls[0]
    assert method == "GET"
    assert kwargs["params"] == {"data": QUERY}


def test_gateway_timeout_becomes_network_error_with_status():
    session = FakeSession(FakeResponse(status_code=504, text="Gateway Timeout"))

    with pytest.raises(NetworkError) as excinfo:
        make_client(session).query(QUERY)

    assert excinfo.value.status_code == 504
    assert excinfo.value.body == "Gateway Timeout"
    assert "504" in str(excinfo.value)


def test_connection_failure_becomes_network_error():
    session = FakeSession(error=requests.exceptions.ConnectionError("connection refused"))

    with pytest.raises(NetworkError) as excinfo:
        make_client(session).query(QUERY)

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, requests.exceptions.ConnectionError)


def test_non_json_body_is_malformed():
    session = FakeSession(FakeResponse(status_code=200, payload=None, text="<html>rate limited</html>"))

    with pytest.raises(MalformedResponseError):
        make_client(session).query(QUERY)


def test_missing_elements_is_malformed():
    session = FakeSession(FakeResponse(payload={"remark": "runtime error"}))

    with pytest.raises(MalformedResponseError) as excinfo:
        make_client(session).query(QUERY)

    assert isinstance(excinfo.value, ExplorerError)


def test_empty_elements_is_a_valid_answer():
    session = FakeSession(FakeResponse(payload={"version": 0.6, "elements": []}))
    assert make_client(session).query(QUERY)["elements"] == []


def test_close_closes_session():
    session = FakeSession(FakeResponse(payload={"elements": []}))
    make_client(session).close()
    assert session.closed
