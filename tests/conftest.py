"""Pytest configuration and fixtures."""

import os
import sys
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from provisioner.config import Config  # noqa: E402

TENANT_ID = "11111111-1111-1111-1111-111111111111"
SUBSCRIPTION_ID = "22222222-2222-2222-2222-222222222222"
OBJECT_ID = "33333333-3333-3333-3333-333333333333"
CLIENT_ID = "44444444-4444-4444-4444-444444444444"

CREDENTIAL_ENV = {
    "CLIENT_ID": CLIENT_ID,
    "CLIENT_SECRET": "not-a-real-secret",
    "TENANT_ID": TENANT_ID,
    "SUBSCRIPTION_ID": SUBSCRIPTION_ID,
}


@pytest.fixture
def config() -> Config:
    """A valid workflow configuration."""
    return Config(
        tenant_id=TENANT_ID,
        subscription_id=SUBSCRIPTION_ID,
        object_id=OBJECT_ID,
        operation_timeout_seconds=60,
    )


@pytest.fixture
def workflow_env() -> Generator[dict[str, str], None, None]:
    """Process environment with credentials and principal set."""
    env = {**CREDENTIAL_ENV, "OBJECT_ID": OBJECT_ID}
    with patch.dict(os.environ, env, clear=True):
        yield env
