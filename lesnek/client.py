"""
ACME v1 client for Let's Encrypt certificate issuance over HTTP-01.

Typical use::

    client = ACMEClient(AcmeConfig(certs_dir="certs", webroot_dir="/var/www"))
    client.init_account()
    client.sign_domains(["example.com", "www.example.com"])
"""

import os
import logging
from typing import List, Optional, Sequence, Tuple

from .authorization import DomainAuthorizer
from .config import AcmeConfig
from .csr import CSR_FILENAME, load_or_generate_csr
from .errors import ConfigurationError
from .issuance import CertificateChain, CertificateIssuer
from .jws import JWSSigner
from .keys import AccountManager, ensure_key, load_private_key
from .polling import RetryPolicy
from .transport import HttpTransport

logger = logging.getLogger(__name__)


class ACMEClient:
    """
    Obtains certificates for domains served from a web root.

    Args:
        config: Immutable run configuration
        transport: ACME transport; defaults to ``HttpTransport(config.ca_base)``
        log: Logger for progress messages; defaults to this module's logger
        retry_policy: Polling policy; defaults to ``config.retry_policy()``
        self_check_session: requests session for the challenge self-check
    """

    def __init__(
        self,
        config: Optional[AcmeConfig] = None,
        transport=None,
        log: Optional[logging.Logger] = None,
        retry_policy: Optional[RetryPolicy] = None,
        self_check_session=None,
    ):
        self.config = config or AcmeConfig()
        self.transport = transport or HttpTransport(self.config.ca_base)
        self.log = log or logger
        self.retry_policy = retry_policy or self.config.retry_policy()
        self.self_check_session = self_check_session

        self.accounts = AccountManager(
            self.config.account_dir,
            self.transport,
            license_url=self.config.license_url,
            contacts=self.config.contacts,
            key_size=self.config.key_size,
            log=self.log,
        )

    def init_account(self) -> bool:
        """Create and register the account key unless it already exists."""
        return self.accounts.init_account()

    def sign_domains(self, domains: Sequence[str], reuse_csr: bool = False) -> CertificateChain:
        """
        Get a certificate covering all ``domains``.

        The first domain is the subject CN and names the storage directory;
        all of them are listed as subjectAltNames. Call once per domain for
        individual certificates.

        Args:
            domains: Domain names, primary first
            reuse_csr: Reuse ``last.csr`` from a previous run if present

        Returns:
            The issued chain, also written to ``<certs_dir>/<primary>/``
        """
        domains = list(domains)
        if not domains:
            raise ConfigurationError("No domains given")

        self.log.info(f"Starting certificate generation process for domains: {', '.join(domains)}")

        account_key = load_private_key(self.config.account_key_path)
        signer = JWSSigner(account_key, self.transport, log=self.log)

        authorizer = DomainAuthorizer(
            signer,
            self.config.challenge_dir,
            challenge_type=self.config.challenge_type,
            retry_policy=self.retry_policy,
            self_check=self.config.self_check,
            session=self.self_check_session,
            log=self.log,
        )
        for domain in domains:
            authorizer.authorize(domain)

        domain_path = self.config.domain_path(domains[0])
        domain_key = ensure_key(domain_path, self.config.key_size, log=self.log)

        csr64 = load_or_generate_csr(
            domain_key,
            domains,
            os.path.join(domain_path, CSR_FILENAME),
            country_code=self.config.country_code,
            state_name=self.config.state_name,
            reuse=reuse_csr,
            log=self.log,
        )

        issuer = CertificateIssuer(signer, retry_policy=self.retry_policy, log=self.log)
        return issuer.issue(csr64, domain_path)

    def cert_paths(self, domain: str) -> Tuple[str, str]:
        """(fullchain path, private key path) for a primary domain."""
        domain_path = self.config.domain_path(domain)
        return os.path.join(domain_path, "fullchain.pem"), os.path.join(domain_path, "private.pem")


def issue_certificate(
    domains: List[str],
    config: Optional[AcmeConfig] = None,
    reuse_csr: bool = False,
    transport=None,
    log: Optional[logging.Logger] = None,
) -> Tuple[str, str]:
    """
    Issue a certificate for the given domains.

    Args:
        domains: List of domain names (first is primary)
        config: Run configuration, defaults to ``AcmeConfig()``
        reuse_csr: Reuse a previously generated CSR
        transport: ACME transport override
        log: Logger override

    Returns:
        Tuple of (fullchain_path, key_path)
    """
    client = ACMEClient(config, transport=transport, log=log)
    client.init_account()
    client.sign_domains(domains, reuse_csr=reuse_csr)
    return client.cert_paths(domains[0])
