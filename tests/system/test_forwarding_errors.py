import httpx
import pytest

from conftest import DOWNSTREAM_URL


@pytest.mark.system
@pytest.mark.parametrize("path", ["/delay", "/failure"])
def test_transport_failure_is_502(make_proxy, downstream, path):
    downstream.error = httpx.ConnectError("connection refused")
    tc = make_proxy()

    r = tc.post(path, json={"a": 1}, headers={"X-Failure-Rate": "0"})

    assert r.status_code == 502
    assert r.json() == {
        "error": "Failed to forward request",
        "details": "connection refused",
        "target_url": DOWNSTREAM_URL,
    }


@pytest.mark.system
def test_timeout_is_502(make_proxy, downstream):
    downstream.error = httpx.ReadTimeout("timed out")
    r = make_proxy().post("/delay", json={"a": 1})
    assert r.status_code == 502
    assert r.json()["details"] == "timed out"


@pytest.mark.system
def test_unsupported_override_url_is_502(make_proxy, downstream):
    downstream.error = httpx.UnsupportedProtocol("Request URL has an unsupported protocol 'ftp://'.")
    r = make_proxy().post(
        "/delay", json={"a": 1}, headers={"X-Proxy-Url": "ftp://files.test/drop"}
    )
    assert r.status_code == 502
    assert r.json()["target_url"] == "ftp://files.test/drop"
    assert "unsupported protocol" in r.json()["details"]


@pytest.mark.system
@pytest.mark.parametrize("path", ["/delay", "/failure"])
def test_unencodable_payload_is_400(make_proxy, downstream, path):
    # NaN parses as JSON input but has no strict JSON encoding
    r = make_proxy().post(
        path,
        content=b'{"a": NaN}',
        headers={"content-type": "application/json", "X-Failure-Rate": "0"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Failed to serialize request body"
    assert downstream.requests == []


@pytest.mark.system
def test_unencodable_payload_on_simulated_failure_is_400(make_proxy, downstream):
    r = make_proxy().post(
        "/failure",
        content=b'{"a": Infinity}',
        headers={"content-type": "application/json", "X-Failure-Rate": "1"},
    )
    assert r.status_code == 400
    assert downstream.requests == []


@pytest.mark.system
def test_malformed_json_body_is_rejected(make_proxy, downstream):
    r = make_proxy().post(
        "/delay", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert r.status_code == 422
    assert downstream.requests == []
