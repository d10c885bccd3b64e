import os
import sys

import pytest

# Ensure project root is on sys.path when running without an install
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture
def anyio_backend():
    return "asyncio"
