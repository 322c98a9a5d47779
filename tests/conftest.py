"""
Pytest configuration and fixtures for ddb-foundry tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add src directory to Python path to allow importing ddb_foundry
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def ddb_sample():
    """Load the sample DDB character JSON (Ranger 5 / Druid 3 wood elf)."""
    with open(FIXTURES_DIR / "ddb_character_sample.json", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def ddb_sample_path():
    return FIXTURES_DIR / "ddb_character_sample.json"
