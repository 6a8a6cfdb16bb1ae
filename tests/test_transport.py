"""Tests for lesnek.transport."""
import json
from unittest import mock

import pytest
import requests

from lesnek import errors
from lesnek.transport import HttpTransport, Response, up_links

CA = "https://acme-staging.api.letsencrypt.org"


def _http_response(status_code=200, body=b"", headers=None):
    resp = mock.MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.content = body
    resp.headers = requests.structures.CaseInsensitiveDict(headers or {})
    return resp


@pytest.fixture
def session():
    return mock.MagicMock(spec=requests.Session, headers={})


def test_up_links_keeps_header_order():
    header = ('<https://ca/issuer-1>;rel="up", <https://ca/terms>;rel="terms-of-service", '
              '<https://ca/issuer-2>; rel="up"')
    assert up_links(header) == ["https://ca/issuer-1", "https://ca/issuer-2"]
    assert up_links(None) == []
    assert up_links("") == []


def test_response_json_and_text():
    assert Response(body=b'{"status": "valid"}').json() == {"status": "valid"}
    assert Response(body=b"\x30\x82").json() == {}
    assert Response().json() == {}
    assert Response(body=b"hi").text == "hi"


def test_resolve():
    transport = HttpTransport(CA + "/", session=mock.MagicMock(headers={}))
    assert transport.resolve("/acme/new-reg") == CA + "/acme/new-reg"
    assert transport.resolve("https://other/acme/authz/1") == "https://other/acme/authz/1"


def test_post_returns_response_value(session):
    session.request.return_value = _http_response(
        201,
        b'{"ok": true}',
        {
            "Replay-Nonce": "n2",
            "Location": "/acme/cert/1",
            "Link": '<https://ca.example/acme/issuer-cert>;rel="up"',
        },
    )
    transport = HttpTransport(CA, session=session)

    response = transport.post("/acme/new-cert", {"payload": "x"})

    method, url = session.request.call_args[0]
    assert (method, url) == ("POST", CA + "/acme/new-cert")
    assert json.loads(session.request.call_args[1]["data"]) == {"payload": "x"}
    assert response == Response(
        body=b'{"ok": true}',
        status_code=201,
        nonce="n2",
        location=CA + "/acme/cert/1",
        links=["https://ca.example/acme/issuer-cert"],
    )


def test_new_nonce_uses_head(session):
    session.request.return_value = _http_response(200, headers={"Replay-Nonce": "n1"})
    transport = HttpTransport(CA, session=session)

    assert transport.new_nonce().nonce == "n1"
    assert session.request.call_args[0] == ("HEAD", CA + "/directory")


def test_network_error(session):
    session.request.side_effect = requests.ConnectionError("down")
    transport = HttpTransport(CA, session=session)

    with pytest.raises(errors.TransportError):
        transport.get("/acme/authz/1")
    assert issubclass(errors.TransportError, errors.ProtocolError)
