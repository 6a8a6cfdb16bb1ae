"""
Certificate issuance: submit the CSR, wait for the certificate, fetch its chain.
"""

import os
import time
import base64
import logging
import textwrap
from dataclasses import dataclass
from typing import List, Optional

from .errors import ProtocolError
from .fileutil import ensure_dir, write_file
from .polling import RetryPolicy

logger = logging.getLogger(__name__)


def pem_from_der(body: bytes) -> str:
    """Wrap a DER certificate as a PEM block with 64-column base64 lines."""
    encoded = base64.b64encode(body).decode("ascii")
    lines = "".join(line + "\n" for line in textwrap.wrap(encoded, 64))
    return f"-----BEGIN CERTIFICATE-----\n{lines}-----END CERTIFICATE-----\n"


@dataclass(frozen=True)
class CertificateChain:
    """PEM blocks as retrieved: the leaf first, then the intermediates."""

    certificates: List[str]

    def __post_init__(self):
        if not self.certificates:
            raise ProtocolError("No certificates generated")

    @property
    def cert(self) -> str:
        return self.certificates[0]

    @property
    def chain(self) -> str:
        return "".join(self.certificates[1:])

    @property
    def fullchain(self) -> str:
        return "".join(self.certificates)


def assemble_chain(certificates: List[str]) -> CertificateChain:
    return CertificateChain(list(certificates))


def save_chain(domain_path: str, chain: CertificateChain, log: Optional[logging.Logger] = None) -> None:
    """Write fullchain.pem, cert.pem and chain.pem, replacing earlier files."""
    log = log or logger
    ensure_dir(domain_path, mode=0o700)
    for filename, content in (
        ("fullchain.pem", chain.fullchain),
        ("cert.pem", chain.cert),
        ("chain.pem", chain.chain),
    ):
        log.info(f"Saving {filename}")
        write_file(os.path.join(domain_path, filename), content, mode=0o644)


class CertificateIssuer:
    """
    Requests a certificate for a CSR and collects the issued chain.

    Args:
        signer: JWSSigner bound to the account key
        retry_policy: Wait/give-up policy while the CA answers 202
        log: Logger for progress messages
    """

    def __init__(self, signer, retry_policy: Optional[RetryPolicy] = None, log: Optional[logging.Logger] = None):
        self.signer = signer
        self.transport = signer.transport
        self.retry_policy = retry_policy or RetryPolicy()
        self.log = log or logger

    def request(self, csr64: str) -> str:
        """
        POST new-cert with the CSR.

        Returns:
            Location of the certificate resource
        """
        response = self.signer.post("/acme/new-cert", {"resource": "new-cert", "csr": csr64})
        if response.status_code != 201:
            self.log.error(f"Invalid response code: {response.status_code}")
            self.log.error(response.text)
            raise ProtocolError(
                f"Invalid response code: {response.status_code}, {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.location:
            raise ProtocolError("new-cert response has no Location header",
                                status_code=response.status_code, body=response.text)
        return response.location

    def fetch(self, location: str) -> List[str]:
        """
        Poll the certificate resource until it is issued, then fetch the "up" chain.

        Returns:
            PEM certificates, leaf first
        """
        started = time.monotonic()
        attempt = 0
        while True:
            response = self.transport.get(location)
            if response.status_code == 202:
                attempt += 1
                self.log.info("Certificate generation pending, sleeping")
                self.retry_policy.wait(attempt, started, what="Certificate")
                continue
            if response.status_code != 200:
                self.log.error(f"Can't get certificate: HTTP code {response.status_code}")
                raise ProtocolError(
                    f"Can't get certificate: HTTP code {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )
            break

        self.log.info("Got certificate! YAY!")
        certificates = [pem_from_der(response.body)]
        for link in response.links:
            self.log.info(f"Requesting chained cert at {link}")
            intermediate = self.transport.get(link)
            if intermediate.status_code != 200:
                raise ProtocolError(
                    f"Can't get chained certificate {link}: HTTP code {intermediate.status_code}",
                    status_code=intermediate.status_code,
                    body=intermediate.text,
                )
            certificates.append(pem_from_der(intermediate.body))
        return certificates

    def issue(self, csr64: str, domain_path: str) -> CertificateChain:
        """Request, retrieve and store the certificate for ``csr64``."""
        location = self.request(csr64)
        chain = assemble_chain(self.fetch(location))
        save_chain(domain_path, chain, self.log)
        self.log.info("Done")
        return chain
