"""
HTTP-01 domain authorization against an ACME v1 server.

For each domain: ask for a challenge, publish the key authorization under
the web root, check we can fetch it back ourselves, ask the CA to validate
and poll the authorization until it leaves the pending state.
"""

import os
import re
import time
import json
import logging
import contextlib
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .errors import ConfigurationError, ProtocolError, VerificationError
from .fileutil import ensure_dir
from .jws import key_authorization
from .polling import RetryPolicy

logger = logging.getLogger(__name__)

SELF_CHECK_TIMEOUT = 10

# tokens become file names under the web root
TOKEN_RE = re.compile(r"[A-Za-z0-9_-]+")


@dataclass(frozen=True)
class Challenge:
    """One challenge offered by the CA for an authorization."""

    type: str
    token: str
    uri: str
    status: str = "unknown"

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Challenge":
        missing = [key for key in ("type", "token", "uri") if not data.get(key)]
        if missing:
            raise ProtocolError(
                f"Challenge is missing {', '.join(missing)}: {json.dumps(data)}",
                body=json.dumps(data),
            )
        token = data["token"]
        if not isinstance(token, str) or not TOKEN_RE.fullmatch(token):
            raise ProtocolError(f"Refusing unsafe challenge token {token!r}", body=json.dumps(data))
        return cls(
            type=data["type"],
            token=token,
            uri=data["uri"],
            status=data.get("status", "unknown"),
        )


def select_challenge(authz: Dict[str, Any], challenge_type: str) -> Optional[Challenge]:
    """First challenge of the wanted type in a new-authz response, if any."""
    for challenge in authz.get("challenges") or []:
        if challenge.get("type") == challenge_type:
            return Challenge.from_json(challenge)
    return None


def challenge_url(domain: str, token: str) -> str:
    return f"http://{domain}/.well-known/acme-challenge/{token}"


@contextlib.contextmanager
def published_token(challenge_dir: str, token: str, content: str, log: logging.Logger):
    """
    Write the key authorization to ``challenge_dir/token`` for the duration of the block.

    The file is removed on exit whether validation succeeded or not.
    """
    ensure_dir(challenge_dir, mode=0o755)
    token_path = os.path.join(challenge_dir, token)
    try:
        with open(token_path, "w") as f:
            f.write(content)
        os.chmod(token_path, 0o644)
    except OSError as e:
        raise ConfigurationError(f"Can't write token file {token_path}: {e}") from e
    try:
        yield token_path
    finally:
        try:
            os.remove(token_path)
        except OSError as e:
            log.debug(f"Could not remove token file {token_path}: {e}")


class DomainAuthorizer:
    """
    Runs the HTTP-01 authorization state machine for single domains.

    Args:
        signer: JWSSigner bound to the account key
        challenge_dir: ``<webroot>/.well-known/acme-challenge``
        challenge_type: Challenge type to pick from the CA's offer
        retry_policy: Wait/give-up policy for the status polling loop
        self_check: Fetch the token over HTTP before asking the CA to validate
        session: requests session used for the self-check
        log: Logger for progress messages
    """

    def __init__(
        self,
        signer,
        challenge_dir: str,
        challenge_type: str = "http-01",
        retry_policy: Optional[RetryPolicy] = None,
        self_check: bool = True,
        session: Optional[requests.Session] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.signer = signer
        self.challenge_dir = challenge_dir
        self.challenge_type = challenge_type
        self.retry_policy = retry_policy or RetryPolicy()
        self.self_check = self_check
        self.session = session or requests.Session()
        self.log = log or logger

    def request_challenge(self, domain: str):
        """
        POST new-authz for ``domain``.

        Returns:
            Tuple of (selected challenge, authorization location)
        """
        self.log.info(f"Requesting challenge for {domain}")
        response = self.signer.post(
            "/acme/new-authz",
            {"resource": "new-authz", "identifier": {"type": "dns", "value": domain}},
        )
        authz = response.json()
        challenge = select_challenge(authz, self.challenge_type)
        if challenge is None:
            raise ProtocolError(
                f"HTTP Challenge for {domain} is not available. Whole response: {json.dumps(authz)}",
                status_code=response.status_code,
                body=response.text,
            )

        self.log.info(f"Got challenge token for {domain}")
        return challenge, response.location

    def verify_locally(self, domain: str, token: str, expected: str) -> None:
        """Fetch the published token over plain HTTP and compare it byte-for-byte."""
        uri = challenge_url(domain, token)
        try:
            resp = self.session.get(uri, timeout=SELF_CHECK_TIMEOUT)
        except requests.RequestException as e:
            raise VerificationError(f"Please check {uri} - token not available: {e}") from e

        if resp.status_code != 200 or resp.text.strip() != expected:
            raise VerificationError(f"Please check {uri} - token not available")

    def trigger(self, challenge: Challenge, key_auth: str) -> Dict[str, Any]:
        """Ask the CA to validate the challenge."""
        self.log.info("Sending request to challenge")
        response = self.signer.post(
            challenge.uri,
            {
                "resource": "challenge",
                "type": self.challenge_type,
                "keyAuthorization": key_auth,
                "token": challenge.token,
            },
        )
        if not 200 <= response.status_code < 300:
            raise ProtocolError(
                f"Challenge request failed with HTTP code {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.json()

    def wait_for_status(self, result: Dict[str, Any], location: str) -> Dict[str, Any]:
        """
        Poll the authorization until it is no longer pending.

        Args:
            result: Body of the challenge trigger response
            location: Authorization resource URI from new-authz

        Returns:
            The final authorization body
        """
        started = time.monotonic()
        attempt = 0
        while True:
            status = result.get("status") if isinstance(result, dict) else None
            if not isinstance(status, str) or not status or status == "invalid":
                self.log.error(f"Verification ended with error: {json.dumps(result)}")
                raise ProtocolError(f"Verification ended with error: {json.dumps(result)}", body=result)
            if status != "pending":
                return result

            attempt += 1
            self.log.info("Verification pending, sleeping")
            self.retry_policy.wait(attempt, started, what="Authorization")
            result = self.signer.transport.get(location).json()

    def authorize(self, domain: str) -> Dict[str, Any]:
        """
        Prove control of ``domain``.

        Raises:
            ProtocolError: no usable challenge, or the authorization went invalid
            VerificationError: the self-check could not fetch the token
            ConfigurationError: the challenge directory cannot be created or written
            PollTimeoutError: the retry policy ran out while pending
        """
        challenge, location = self.request_challenge(domain)
        key_auth = key_authorization(challenge.token, self.signer.jwk)

        with published_token(self.challenge_dir, challenge.token, key_auth, self.log) as token_path:
            self.log.info(
                f"Token for {domain} saved at {token_path} and should be available at "
                f"{challenge_url(domain, challenge.token)}"
            )
            if self.self_check:
                self.verify_locally(domain, challenge.token, key_auth)

            result = self.trigger(challenge, key_auth)
            result = self.wait_for_status(result, location or challenge.uri)

        self.log.info(f"Verification ended with status: {result['status']}")
        return result
