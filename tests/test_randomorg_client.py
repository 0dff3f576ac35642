import json

import pytest
import requests
import responses

from randomorg_client import RANDOM_ORG_URL, RandomOrgClient, RandomSourceError


def _ok(data, **extra):
    result = {"random": {"data": data, "completionTime": "2026-10-17 10:00:00Z"},
              "bitsUsed": 166, "bitsLeft": 249834, "requestsLeft": 999, "advisoryDelay": 0}
    result.update(extra)
    return {"jsonrpc": "2.0", "result": result, "id": 1}


@responses.activate
def test_fetch_decimals_posts_json_rpc_and_parses_data():
    data = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 0.0]
    responses.add(responses.POST, RANDOM_ORG_URL, json=_ok(data, requestsLeft=42))
    client = RandomOrgClient("secret-key")

    values = client.fetch_decimals(10, 5)

    assert values == data
    assert client.requests_left == 42
    body = json.loads(responses.calls[0].request.body)
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "generateDecimalFractions"
    assert body["params"] == {"apiKey": "secret-key", "n": 10, "decimalPlaces": 5, "replacement": True}


@responses.activate
def test_service_error_is_reported_with_reason():
    responses.add(responses.POST, RANDOM_ORG_URL, json={
        "jsonrpc": "2.0", "error": {"code": 400, "message": "The API key you specified does not exist"}, "id": 1})
    with pytest.raises(RandomSourceError) as exc:
        RandomOrgClient("bad").fetch_decimals(5)
    assert "does not exist" in exc.value.reason
    assert "400" in exc.value.reason


@responses.activate
def test_http_status_error():
    responses.add(responses.POST, RANDOM_ORG_URL, status=503, body="unavailable")
    with pytest.raises(RandomSourceError):
        RandomOrgClient("k").fetch_decimals(5)


@responses.activate
def test_network_failure():
    responses.add(responses.POST, RANDOM_ORG_URL, body=requests.ConnectionError("connection refused"))
    with pytest.raises(RandomSourceError) as exc:
        RandomOrgClient("k").fetch_decimals(5)
    assert "connection refused" in exc.value.reason


@responses.activate
def test_non_json_body():
    responses.add(responses.POST, RANDOM_ORG_URL, body="<html>oops</html>", content_type="text/html")
    with pytest.raises(RandomSourceError):
        RandomOrgClient("k").fetch_decimals(5)


@responses.activate
def test_short_data_list():
    responses.add(responses.POST, RANDOM_ORG_URL, json=_ok([0.1, 0.2]))
    with pytest.raises(RandomSourceError) as exc:
        RandomOrgClient("k").fetch_decimals(3)
    assert "expected 3" in exc.value.reason


@responses.activate
def test_value_out_of_range():
    responses.add(responses.POST, RANDOM_ORG_URL, json=_ok([0.1, 1.5]))
    with pytest.raises(RandomSourceError):
        RandomOrgClient("k").fetch_decimals(2)


@pytest.mark.parametrize("count", [0, -1, 10001, 2.5])
def test_invalid_count(count):
    with pytest.raises(ValueError):
        RandomOrgClient("k").fetch_decimals(count)


@responses.activate
def test_get_usage():
    responses.add(responses.POST, RANDOM_ORG_URL, json={
        "jsonrpc": "2.0", "result": {"status": "running", "creationTime": "2026-01-01 00:00:00Z",
                                     "bitsLeft": 998532, "requestsLeft": 199996,
                                     "totalBits": 1468, "totalRequests": 4}, "id": 2})
    client = RandomOrgClient("k")
    usage = client.get_usage()
    assert usage.status == "running"
    assert usage.bits_left == 998532
    assert client.requests_left == 199996
    assert json.loads(responses.calls[0].request.body)["method"] == "getUsage"


@responses.activate
def test_custom_endpoint():
    url = "https://example.test/invoke"
    responses.add(responses.POST, url, json=_ok([0.5]))
    assert RandomOrgClient("k", endpoint=url).fetch_decimals(1) == [0.5]
