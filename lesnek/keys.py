"""
Account and domain key management.
"""

import os
import logging
from typing import Optional, Sequence

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from .errors import CryptoError, ProtocolError
from .fileutil import ensure_dir, write_file
from .jws import JWSSigner

logger = logging.getLogger(__name__)

DEFAULT_KEY_SIZE = 4096


def generate_key(output_dir: str, key_size: int = DEFAULT_KEY_SIZE):
    """
    Generate an RSA keypair and store it as private.pem/public.pem in output_dir.

    Args:
        output_dir: Directory to write the keys to, created if missing
        key_size: RSA modulus size in bits

    Returns:
        The generated private key
    """
    try:
        key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        private_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_pem = key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    except (TypeError, ValueError) as e:
        raise CryptoError(f"Key generation failed: {e}") from e

    ensure_dir(output_dir, mode=0o700)
    write_file(os.path.join(output_dir, "private.pem"), private_pem, mode=0o600)
    write_file(os.path.join(output_dir, "public.pem"), public_pem, mode=0o644)
    return key


def load_private_key(key_path: str):
    """Load an unencrypted PEM private key from file."""
    try:
        with open(key_path, 'rb') as f:
            key_data = f.read()
        return load_pem_private_key(key_data, password=None)
    except (OSError, ValueError, TypeError) as e:
        raise CryptoError(f"Can't read private key {key_path}: {e}") from e


def ensure_key(output_dir: str, key_size: int = DEFAULT_KEY_SIZE, log: Optional[logging.Logger] = None):
    """Load output_dir/private.pem, generating a keypair first if it is missing."""
    log = log or logger
    key_path = os.path.join(output_dir, "private.pem")
    if os.path.isfile(key_path):
        log.info(f"Using existing private key: {key_path}")
        return load_private_key(key_path)

    log.info(f"Generating new private key: {key_path}")
    return generate_key(output_dir, key_size)


class AccountManager:
    """
    Creates the account keypair and registers it with the CA, once.

    Args:
        account_dir: Directory holding the account private.pem/public.pem
        transport: Transport used to reach the CA
        license_url: Subscriber agreement URL sent with the registration
        contacts: Contact URIs ("mailto:..."), sent when not empty
        key_size: RSA modulus size for a new account key
        log: Logger for progress messages
    """

    def __init__(
        self,
        account_dir: str,
        transport,
        license_url: str,
        contacts: Sequence[str] = (),
        key_size: int = DEFAULT_KEY_SIZE,
        log: Optional[logging.Logger] = None,
    ):
        self.account_dir = account_dir
        self.transport = transport
        self.license_url = license_url
        self.contacts = list(contacts)
        self.key_size = key_size
        self.log = log or logger

    @property
    def key_path(self) -> str:
        return os.path.join(self.account_dir, "private.pem")

    def init_account(self) -> bool:
        """
        Generate and register the account key unless it already exists.

        Safe to call before every run.

        Returns:
            True if a new account was registered, False if one already existed
        """
        if os.path.isfile(self.key_path):
            self.log.info("Account already registered. Continuing.")
            return False

        self.log.info("Starting new account registration")
        key = generate_key(self.account_dir, self.key_size)
        self.register(key)
        self.log.info("New account certificate registered")
        return True

    def register(self, key):
        """Send new-reg for ``key``."""
        self.log.info("Sending registration to letsencrypt server")
        payload = {"resource": "new-reg", "agreement": self.license_url}
        if self.contacts:
            payload["contact"] = self.contacts

        response = JWSSigner(key, self.transport, log=self.log).post("/acme/new-reg", payload)
        if not 200 <= response.status_code < 300:
            self.log.error(f"Account registration failed: {response.status_code}")
            self.log.error(response.text)
            raise ProtocolError(
                f"Account registration failed: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response
