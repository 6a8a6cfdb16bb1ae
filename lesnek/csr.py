"""
Certificate signing request generation.
"""

import os
import logging
from typing import List, Optional, Sequence

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import NameOID

from .errors import CryptoError
from .fileutil import write_file
from .jws import b64

logger = logging.getLogger(__name__)

CSR_FILENAME = "last.csr"


def build_csr(
    private_key,
    domains: Sequence[str],
    country_code: str = "CZ",
    state_name: str = "Czech Republic",
) -> x509.CertificateSigningRequest:
    """
    Build a SHA-256 signed CSR for ``domains``.

    The first domain is the subject CN; every domain, in order, goes into
    the subjectAltName extension.
    """
    if not domains:
        raise CryptoError("At least one domain is required for a CSR")

    try:
        subject = x509.Name([
            x509.NameAttribute(NameOID.COMMON_NAME, domains[0]),
            x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, state_name),
            x509.NameAttribute(NameOID.COUNTRY_NAME, country_code),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Unknown"),
        ])
        return x509.CertificateSigningRequestBuilder().subject_name(
            subject
        ).add_extension(
            x509.BasicConstraints(ca=False, path_length=None),
            critical=False,
        ).add_extension(
            x509.SubjectAlternativeName([x509.DNSName(domain) for domain in domains]),
            critical=False,
        ).add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=True,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=False,
        ).sign(private_key, hashes.SHA256())
    except (TypeError, ValueError) as e:
        raise CryptoError(f"CSR couldn't be generated! {e}") from e


def load_csr(csr_path: str) -> x509.CertificateSigningRequest:
    try:
        with open(csr_path, 'rb') as f:
            return x509.load_pem_x509_csr(f.read())
    except (OSError, ValueError) as e:
        raise CryptoError(f"Can't read CSR {csr_path}: {e}") from e


def csr_wire_form(csr_path: str) -> str:
    """
    Base64url DER of the PEM request stored at ``csr_path``.

    This is the value ACME expects in the ``csr`` field of new-cert.
    """
    csr = load_csr(csr_path)
    return b64(csr.public_bytes(serialization.Encoding.DER))


def generate_csr(
    private_key,
    domains: Sequence[str],
    csr_path: str,
    country_code: str = "CZ",
    state_name: str = "Czech Republic",
) -> str:
    """
    Build a CSR, store it as PEM at ``csr_path`` and return its wire form.
    """
    csr = build_csr(private_key, domains, country_code, state_name)
    write_file(csr_path, csr.public_bytes(serialization.Encoding.PEM), mode=0o644)
    return csr_wire_form(csr_path)


def load_or_generate_csr(
    private_key,
    domains: Sequence[str],
    csr_path: str,
    country_code: str = "CZ",
    state_name: str = "Czech Republic",
    reuse: bool = False,
    log: Optional[logging.Logger] = None,
) -> str:
    """Reuse the CSR at ``csr_path`` when asked to and present, else generate one."""
    log = log or logger
    if reuse and os.path.isfile(csr_path):
        log.info(f"Reusing CSR {csr_path}")
        stored = csr_domains(load_csr(csr_path))
        if stored != list(domains):
            log.warning(f"Reused CSR covers {stored}, not {list(domains)}")
        return csr_wire_form(csr_path)
    log.info(f"Generating CSR for {', '.join(domains)}")
    return generate_csr(private_key, domains, csr_path, country_code, state_name)


def csr_domains(csr: x509.CertificateSigningRequest) -> List[str]:
    """DNS names listed in the subjectAltName extension of ``csr``."""
    try:
        san = csr.extensions.get_extension_for_oid(x509.ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.DNSName)
