"""
JSON Web Signature support for ACME v1 requests.

All authenticated calls go through ``JWSSigner.post``, which owns the single
nonce slot: each signed request consumes the current nonce and the response
to it supplies the next one.
"""

import json
import hashlib
import logging
import threading
from typing import Any, Dict, Optional

import josepy as jose
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from .errors import CryptoError, ProtocolError

logger = logging.getLogger(__name__)


def b64(data: bytes) -> str:
    """Base64url encode without padding."""
    return jose.b64encode(data).decode("ascii")


def _int_bytes(value: int) -> bytes:
    return value.to_bytes((value.bit_length() + 7) // 8 or 1, byteorder="big")


def _json(data: Any) -> bytes:
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def jwk_from_key(key) -> Dict[str, str]:
    """Public JWK for an RSA private (or public) key, in header order."""
    if hasattr(key, "public_key"):
        key = key.public_key()
    numbers = key.public_numbers()
    return {
        "kty": "RSA",
        "n": b64(_int_bytes(numbers.n)),
        "e": b64(_int_bytes(numbers.e)),
    }


def thumbprint(jwk: Dict[str, str]) -> str:
    """
    Base64url SHA-256 of the JWK serialized as ``{"e":..,"kty":..,"n":..}``.

    The field order is part of the hash input and must not change.
    """
    ordered = {"e": jwk["e"], "kty": jwk["kty"], "n": jwk["n"]}
    return b64(hashlib.sha256(_json(ordered)).digest())


def key_authorization(token: str, jwk: Dict[str, str]) -> str:
    """Challenge response published at ``/.well-known/acme-challenge/<token>``."""
    return f"{token}.{thumbprint(jwk)}"


class JWSSigner:
    """
    Signs payloads with the account key and posts them to the CA.

    Args:
        key: Account RSA private key
        transport: Object with ``post``, ``get`` and ``new_nonce``
        log: Logger to report requests to (defaults to the module logger)
    """

    def __init__(self, key, transport, log: Optional[logging.Logger] = None):
        self.key = key
        self.transport = transport
        self.log = log or logger
        self.nonce: Optional[str] = None
        self.jwk = jwk_from_key(key)
        self._lock = threading.Lock()

    @property
    def header(self) -> Dict[str, Any]:
        return {"alg": "RS256", "jwk": dict(self.jwk)}

    def bootstrap(self) -> None:
        """Fetch an initial nonce unless one is already held."""
        if self.nonce:
            return
        response = self.transport.new_nonce()
        if not response.nonce:
            raise ProtocolError("Server did not return a Replay-Nonce",
                                status_code=response.status_code, body=response.text)
        self.nonce = response.nonce

    def sign(self, payload: Any) -> Dict[str, Any]:
        """
        Build the JWS envelope for ``payload`` using the current nonce.

        Returns:
            ``{"header", "protected", "payload", "signature"}`` ready to be
            serialized as JSON
        """
        header = self.header
        protected = dict(header)
        protected["nonce"] = self.nonce

        payload64 = b64(_json(payload))
        protected64 = b64(_json(protected))

        try:
            signature = self.key.sign(
                f"{protected64}.{payload64}".encode("ascii"),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except (TypeError, ValueError, UnsupportedAlgorithm) as e:
            raise CryptoError(f"Signing failed: {e}") from e

        return {
            "header": header,
            "protected": protected64,
            "payload": payload64,
            "signature": b64(signature),
        }

    def post(self, uri: str, payload: Any):
        """
        Sign ``payload`` and POST it to ``uri``.

        The nonce slot is replaced with the nonce of the response, so calls
        must not overlap; the lock enforces that.
        """
        with self._lock:
            self.bootstrap()
            envelope = self.sign(payload)
            self.nonce = None

            self.log.info(f"Sending signed request to {uri}")
            response = self.transport.post(uri, envelope)
            self.nonce = response.nonce
        return response
