"""
Pytest configuration and fixtures for caml-protocol tests.
"""

import json
import sys
from pathlib import Path
import pytest

# Add src directory to Python path to allow importing caml_protocol
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from caml_protocol.index import build_entity_index
from caml_protocol.models import AdventureModule, AdventurePack


FIXTURES_DIR = Path(__file__).parent / "fixtures" / "caml"


@pytest.fixture
def adventure_json() -> str:
    """Raw text of the sample adventure (direct module shape)."""
    return (FIXTURES_DIR / "sunken_shrine.json").read_text(encoding="utf-8")


@pytest.fixture
def adventure_yaml() -> str:
    """Raw text of the bare-fields YAML draft."""
    return (FIXTURES_DIR / "sunken_shrine.yaml").read_text(encoding="utf-8")


@pytest.fixture
def adventure_data(adventure_json: str) -> dict:
    """Sample adventure as a plain dict."""
    return json.loads(adventure_json)


@pytest.fixture
def adventure_module(adventure_data: dict) -> AdventureModule:
    """Sample adventure as a model."""
    return AdventureModule.model_validate(adventure_data)


@pytest.fixture
def adventure_pack(adventure_module: AdventureModule) -> AdventurePack:
    """Sample adventure with its default entity index."""
    return AdventurePack(
        adventure=adventure_module,
        entities=build_entity_index(adventure_module),
    )
