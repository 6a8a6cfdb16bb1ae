"""
Configuration handling for lesnek.
"""

import os
import yaml
from dataclasses import dataclass, field, fields, asdict
from typing import Optional, Tuple

from .errors import ConfigurationError
from .polling import RetryPolicy

# ACME v1 endpoints
LE_PRODUCTION_URL = "https://acme-v01.api.letsencrypt.org"
LE_STAGING_URL = "https://acme-staging.api.letsencrypt.org"

# Subscriber agreement sent with new-reg
DEFAULT_LICENSE_URL = "https://letsencrypt.org/documents/LE-SA-v1.1.1-August-1-2016.pdf"

ACCOUNT_DIR_NAME = "_account"
CHALLENGE_PATH = os.path.join(".well-known", "acme-challenge")


@dataclass(frozen=True)
class AcmeConfig:
    """Configuration for one certificate run. Passed once, never mutated."""

    # Storage
    certs_dir: str = "certs"
    webroot_dir: str = "web"

    # Certificate authority
    staging: bool = False
    ca_url: Optional[str] = None

    # Registration and validation
    challenge_type: str = "http-01"
    license_url: str = DEFAULT_LICENSE_URL
    contacts: Tuple[str, ...] = field(default_factory=tuple)
    self_check: bool = True

    # CSR subject
    country_code: str = "CZ"
    state_name: str = "Czech Republic"

    # Keys
    key_size: int = 4096

    # Polling
    poll_interval: float = 1.0
    poll_max_attempts: Optional[int] = None
    poll_deadline: Optional[float] = None
    poll_backoff: str = "fixed"
    poll_max_interval: float = 30.0

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        if isinstance(self.contacts, str):
            raise ConfigurationError('contacts must be a list, e.g. ["mailto:admin@example.com"]')
        # YAML hands us lists
        if not isinstance(self.contacts, tuple):
            object.__setattr__(self, "contacts", tuple(self.contacts or ()))
        if self.challenge_type != "http-01":
            raise ConfigurationError(f"Unsupported challenge type: {self.challenge_type}")
        if self.poll_backoff not in RetryPolicy.BACKOFF_STRATEGIES:
            raise ConfigurationError(f"Unknown poll backoff strategy: {self.poll_backoff}")

    @property
    def ca_base(self) -> str:
        if self.ca_url:
            return self.ca_url.rstrip("/")
        return LE_STAGING_URL if self.staging else LE_PRODUCTION_URL

    @property
    def account_dir(self) -> str:
        return os.path.join(self.certs_dir, ACCOUNT_DIR_NAME)

    @property
    def account_key_path(self) -> str:
        return os.path.join(self.account_dir, "private.pem")

    @property
    def challenge_dir(self) -> str:
        return os.path.join(self.webroot_dir, CHALLENGE_PATH)

    def domain_path(self, domain: str) -> str:
        """Directory holding the key, CSR and certificates for ``domain``."""
        return os.path.join(self.certs_dir, domain)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            interval=self.poll_interval,
            max_attempts=self.poll_max_attempts,
            deadline=self.poll_deadline,
            backoff=self.poll_backoff,
            max_interval=self.poll_max_interval,
        )


def load_config(config_path: str) -> AcmeConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        AcmeConfig object with values from the YAML file
    """
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        try:
            config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        raise ConfigurationError("Invalid configuration format. Expected a YAML dictionary.")

    known = {f.name for f in fields(AcmeConfig)}
    unknown = sorted(set(config_data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

    return AcmeConfig(**config_data)


def save_config(config: AcmeConfig, config_path: str):
    """
    Save configuration to a YAML file.

    Args:
        config: AcmeConfig object to save
        config_path: Path to save the YAML configuration
    """
    config_dict = {
        key: (list(value) if isinstance(value, tuple) else value)
        for key, value in asdict(config).items()
        if value is not None
    }

    # Ensure directory exists
    os.makedirs(os.path.dirname(os.path.abspath(config_path)), exist_ok=True)

    # Write to YAML file
    with open(config_path, 'w') as f:
        yaml.dump(config_dict, f, default_flow_style=False)
