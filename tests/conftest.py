import os
import sys
from datetime import date

import pytest

# Ensure project root is on sys.path for module resolution
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from app import create_app
from beneficiarios import BeneficiaryRegistry
from lotes import CreditBatchIssuer
from pagamentos_gateway import SandboxGenerator
from repositorio import MemoryStore

TODAY = date(2030, 1, 10)


@pytest.fixture
def test_app(monkeypatch):
    monkeypatch.setenv('SECRET_KEY', 'test-secret')
    app = create_app(
        test_config={
            'TESTING': True,
            'RATELIMIT_ENABLED': False,
            'LOG_FILE': '',
            'PUBLIC_BASE_URL': 'http://testserver',
        },
        generator=SandboxGenerator(base_url='http://testserver', seed=42),
        clock=lambda: TODAY,
    )
    yield app


@pytest.fixture
def client(test_app):
    return test_app.test_client()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry(store):
    return BeneficiaryRegistry(store)


@pytest.fixture
def issuer(store):
    return CreditBatchIssuer(store, SandboxGenerator(seed=7), clock=lambda: TODAY)
