"""Tests for the request dispatcher: URL resolution, headers, method tunnelling, errors."""
import httpx
import pytest

from realm_client.dispatcher import RequestDispatcher, content_type_for, join_lines, token_key
from realm_client.errors import ConfigurationError, DispatchError
from realm_client.token_refresher import TokenRefresher


@pytest.fixture
def dispatcher(store, cache, http_client):
    cache.store("master", "ADS", "ads-token")
    cache.store("master", "VSAS", "vsas-token")
    return RequestDispatcher(store, cache, http_client)


@pytest.mark.parametrize(
    "resource,key",
    [("ADSData", "ADS"), ("VSASData", "VSAS"), ("Telemetry", "Telemetry"), ("DataData", "Data")],
)
def test_token_key(resource, key):
    assert token_key(resource) == key


def test_content_type_for():
    assert content_type_for("ADSData") == "application/xml"
    assert content_type_for("VSASData") == "application/json"
    assert content_type_for("Other") == "application/json"


def test_join_lines_trims_and_concatenates():
    assert join_lines('{\n  "a": 1,\n  "b": 2\n}\n') == '{"a": 1,"b": 2}'


def test_post_vsas_end_to_end(dispatcher, backend):
    body = dispatcher.send("master", "VSASData", '{"responders":[]}', "POST")
    assert body == '{"status": "accepted"}'
    req = backend.resource_requests[0]
    assert req["method"] == "POST"
    assert req["url"] == "http://host:8080/api/VSASData"
    assert req["headers"]["content-type"] == "application/json"
    assert req["headers"]["accept"] == "application/json"
    assert req["headers"]["authorization"] == "Bearer vsas-token"
    assert "x-http-method-override" not in req["headers"]
    assert req["body"] == '{"responders":[]}'


def test_post_ads_uses_xml_and_ads_token(dispatcher, backend):
    dispatcher.send("master", "ADSData", "<message name=\"ADS\"/>", "POST")
    req = backend.resource_requests[0]
    assert req["headers"]["content-type"] == "application/xml"
    assert req["headers"]["authorization"] == "Bearer ads-token"


def test_patch_is_tunnelled_over_post(dispatcher, backend):
    dispatcher.send("master", "VSASData", '{"responders":[]}', "PATCH")
    req = backend.resource_requests[0]
    assert req["method"] == "POST"
    assert req["headers"]["x-http-method-override"] == "PATCH"
    assert req["body"] == '{"responders":[]}'


def test_get_sends_no_body(dispatcher, backend):
    dispatcher.send("master", "VSASData", "ignored payload", "GET")
    req = backend.resource_requests[0]
    assert req["method"] == "GET"
    assert req["body"] == ""
    assert req["headers"]["user-agent"] == "Mozilla/5.0"
    assert "x-http-method-override" not in req["headers"]


def test_method_is_normalised(dispatcher, backend):
    dispatcher.send("master", "VSASData", "{}", " post ")
    assert backend.resource_requests[0]["method"] == "POST"


def test_unsupported_method(dispatcher):
    with pytest.raises(ValueError):
        dispatcher.send("master", "VSASData", "{}", "DELETE")


def test_payload_is_utf8(dispatcher, backend):
    dispatcher.send("master", "VSASData", '{"label":"café"}', "POST")
    assert backend.resource_requests[0]["body"] == '{"label":"café"}'


def test_other_realm_host_with_master_port_and_token(dispatcher, backend):
    dispatcher.send("ops", "ADSData", "<message/>", "POST")
    req = backend.resource_requests[0]
    assert req["url"] == "http://ops-host:8080/api/ADSData"
    assert req["headers"]["authorization"] == "Bearer ads-token"


def test_unknown_realm(dispatcher):
    with pytest.raises(ConfigurationError):
        dispatcher.send("nowhere", "VSASData", "{}", "POST")


def test_missing_token_raises_dispatch_error(store, cache, http_client, backend):
    dispatcher = RequestDispatcher(store, cache, http_client)
    with pytest.raises(DispatchError, match="VSAS"):
        dispatcher.send("master", "VSASData", "{}", "POST")
    assert backend.resource_requests == []


@pytest.mark.parametrize("status", [400, 401, 500])
def test_non_2xx_raises_io_error(dispatcher, backend, status):
    backend.resource_status = status
    with pytest.raises(IOError) as exc:
        dispatcher.send("master", "VSASData", "{}", "POST")
    assert isinstance(exc.value, DispatchError)
    assert exc.value.status_code == status
    assert isinstance(exc.value.__cause__, httpx.HTTPStatusError)


def test_connection_failure_raises_dispatch_error(store, cache):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    cache.store("master", "VSAS", "vsas-token")
    with httpx.Client(transport=httpx.MockTransport(refuse)) as client:
        dispatcher = RequestDispatcher(store, cache, client)
        with pytest.raises(DispatchError, match="connection refused"):
            dispatcher.send("master", "VSASData", "{}", "POST")


def test_invalid_utf8_response(store, cache):
    cache.store("master", "VSAS", "vsas-token")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"\xff\xfe\xfa"))
    with httpx.Client(transport=transport) as client:
        with pytest.raises(DispatchError, match="UTF-8"):
            RequestDispatcher(store, cache, client).send("master", "VSASData", "{}", "POST")


def test_token_round_trip_from_authorization_server(store, cache, http_client, backend):
    backend.tokens[("master", "VSAS")] = "abc123"
    TokenRefresher(store, cache, http_client).refresh_all()
    RequestDispatcher(store, cache, http_client).send("master", "VSASData", '{"responders":[]}', "POST")
    assert backend.resource_requests[0]["headers"]["authorization"] == "Bearer abc123"
