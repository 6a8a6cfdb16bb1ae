"""Tests for lesnek.issuance."""
import base64
import json

import josepy as jose
import pytest

from lesnek import errors
from lesnek.issuance import CertificateIssuer, assemble_chain, pem_from_der, save_chain
from lesnek.jws import JWSSigner
from lesnek.polling import RetryPolicy
from lesnek.transport import Response

from helpers import json_response

CERT_LOCATION = "https://ca.example/acme/cert/1"
LINK1 = "https://ca.example/acme/issuer-cert"
LINK2 = "https://ca.example/acme/root-cert"


@pytest.fixture
def issuer(rsa_key, transport):
    return CertificateIssuer(JWSSigner(rsa_key, transport))


def test_pem_from_der_wraps_at_64_columns():
    der = bytes(range(256)) * 2
    pem = pem_from_der(der)
    lines = pem.splitlines()

    assert lines[0] == "-----BEGIN CERTIFICATE-----"
    assert lines[-1] == "-----END CERTIFICATE-----"
    assert pem.endswith("-----END CERTIFICATE-----\n")
    assert all(len(line) <= 64 for line in lines[1:-1])
    assert base64.b64decode("".join(lines[1:-1])) == der


def test_assemble_chain():
    chain = assemble_chain(["LEAF\n", "INT1\n", "INT2\n"])
    assert chain.cert == "LEAF\n"
    assert chain.chain == "INT1\nINT2\n"
    assert chain.fullchain == "LEAF\nINT1\nINT2\n"


def test_assemble_empty_chain_is_fatal():
    with pytest.raises(errors.ProtocolError, match="No certificates"):
        assemble_chain([])


def test_request_submits_csr(issuer, transport):
    transport.add("POST", "/acme/new-cert", Response(status_code=201, location=CERT_LOCATION))

    assert issuer.request("Q1NS") == CERT_LOCATION
    body = transport.requests("POST")[0][2]
    assert json.loads(jose.b64decode(body["payload"])) == {"resource": "new-cert", "csr": "Q1NS"}


def test_request_requires_201(issuer, transport):
    transport.add("POST", "/acme/new-cert",
                  json_response({"detail": "rate limited"}, status_code=429, location=CERT_LOCATION))

    with pytest.raises(errors.ProtocolError) as exc_info:
        issuer.request("Q1NS")
    assert exc_info.value.status_code == 429
    assert "rate limited" in str(exc_info.value)


def test_fetch_polls_then_collects_links_in_order(issuer, transport, mock_sleep):
    transport.add("GET", CERT_LOCATION,
                  Response(status_code=202),
                  Response(body=b"leaf", status_code=200, links=[LINK1, LINK2]))
    transport.add("GET", LINK1, Response(body=b"int1", status_code=200))
    transport.add("GET", LINK2, Response(body=b"int2", status_code=200))

    certificates = issuer.fetch(CERT_LOCATION)

    assert certificates == [pem_from_der(b"leaf"), pem_from_der(b"int1"), pem_from_der(b"int2")]
    assert [uri for _, uri, _ in transport.requests("GET")] == [CERT_LOCATION, CERT_LOCATION, LINK1, LINK2]
    mock_sleep.assert_called_once_with(1.0)


def test_fetch_unexpected_status(issuer, transport):
    transport.add("GET", CERT_LOCATION, Response(body=b"oops", status_code=500))
    with pytest.raises(errors.ProtocolError, match="HTTP code 500"):
        issuer.fetch(CERT_LOCATION)


def test_fetch_times_out(rsa_key, transport):
    issuer = CertificateIssuer(JWSSigner(rsa_key, transport), retry_policy=RetryPolicy(max_attempts=2))
    transport.add("GET", CERT_LOCATION, Response(status_code=202))
    with pytest.raises(errors.PollTimeoutError):
        issuer.fetch(CERT_LOCATION)


def test_save_chain_overwrites(tmp_path):
    domain_path = tmp_path / "example.com"
    domain_path.mkdir()
    (domain_path / "cert.pem").write_text("old")

    save_chain(str(domain_path), assemble_chain(["LEAF\n", "INT\n"]))

    assert (domain_path / "cert.pem").read_text() == "LEAF\n"
    assert (domain_path / "chain.pem").read_text() == "INT\n"
    assert (domain_path / "fullchain.pem").read_text() == "LEAF\nINT\n"


def test_issue_end_to_end(issuer, transport, tmp_path):
    transport.add("POST", "/acme/new-cert", Response(status_code=201, location=CERT_LOCATION))
    transport.add("GET", CERT_LOCATION, Response(body=b"leaf", status_code=200, links=[LINK1]))
    transport.add("GET", LINK1, Response(body=b"int1", status_code=200))

    chain = issuer.issue("Q1NS", str(tmp_path / "example.com"))

    assert chain.fullchain == pem_from_der(b"leaf") + pem_from_der(b"int1")
    assert (tmp_path / "example.com" / "chain.pem").read_text() == pem_from_der(b"int1")
