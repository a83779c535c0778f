# tests/conftest.py
# Ensure project root is on sys.path so `import ftl_engine` works reliably in pytest.
import sys
from pathlib import Path

import pytest

# Resolve project root as the parent of the tests folder
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    # put project root at front so local packages take precedence
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def store():
    from ftl_engine.store import RecordStore
    return RecordStore()


@pytest.fixture
def client(store):
    # fresh app + in-memory store per test; the with-block runs the lifespan
    from fastapi.testclient import TestClient
    from ftl_engine.main import create_app
    with TestClient(create_app(store)) as c:
        yield c
