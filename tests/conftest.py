from pathlib import Path

import pytest
import yaml

from btwrap.engine.gateway import GatewayClient
from btwrap.payments.fake_provider import FakeBraintreeProvider

FAKE_DATA_PATH = Path(__file__).parent / "fixtures" / "fake.yml"


@pytest.fixture(scope="session")
def fake_data():
    return yaml.safe_load(FAKE_DATA_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def valid_nonce(fake_data):
    return fake_data["nonces"]["valid"]["nonce"]


@pytest.fixture
def invalid_nonce(fake_data):
    return fake_data["nonces"]["invalid"]["nonce"]


@pytest.fixture
def user():
    return {"id": "unique123"}


@pytest.fixture
def provider():
    return FakeBraintreeProvider(plan_ids=["monthly", "annual"])


@pytest.fixture
def gateway(provider):
    return GatewayClient(provider, timeout=8.0)
