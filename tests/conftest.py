from unittest import mock

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from lesnek.config import AcmeConfig
from helpers import FakeTransport


@pytest.fixture(autouse=True)
def mock_sleep():
    with mock.patch("time.sleep") as mocked:
        yield mocked


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def config(tmp_path):
    return AcmeConfig(
        certs_dir=str(tmp_path / "certs"),
        webroot_dir=str(tmp_path / "www"),
        key_size=2048,
    )
