import json
import sys
from pathlib import Path

import pytest


# Ensure backend/src is on sys.path for tests so that imports like `services.*` work.
ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from config import Configuration  # noqa: E402
from services.geo_index import CatalogGeoIndex  # noqa: E402
from services.reasoner import Reasoner  # noqa: E402


SAMPLE_CATALOG = ROOT / "data" / "rhodes_sample_catalog.json"


class ScriptedReasoner(Reasoner):
    """Replays canned responses; exceptions in the script are raised instead."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, system_prompt, user_prompt, *, temperature, max_tokens):
        self.calls.append(
            {"system": system_prompt, "user": user_prompt, "temperature": temperature, "max_tokens": max_tokens}
        )
        if not self.responses:
            raise AssertionError("reasoner called more times than scripted")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item if isinstance(item, str) else json.dumps(item)


@pytest.fixture
def cfg():
    return Configuration()


@pytest.fixture
def catalog_path():
    return SAMPLE_CATALOG


@pytest.fixture
def catalog_index():
    return CatalogGeoIndex.from_json(SAMPLE_CATALOG)


@pytest.fixture
def scripted_reasoner():
    return ScriptedReasoner
