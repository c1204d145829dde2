import shutil
import sys
import tempfile
from pathlib import Path

import pytest

# Shared helpers live next to this file
sys.path.insert(0, str(Path(__file__).parent))

from volt_testkit import ALICE, OWNER, UNIT, FakeClock, make_platform  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def platform(clock):
    return make_platform(clock)


@pytest.fixture
def alice_registered(platform):
    platform.register(ALICE, OWNER)
    return platform


@pytest.fixture
def alice_deposited(alice_registered):
    """Alice registered under the owner with 10,000 units deposited."""
    alice_registered.deposit(ALICE, 10_000 * UNIT)
    return alice_registered


@pytest.fixture
def temp_data_dir():
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)
