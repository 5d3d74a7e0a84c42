"""Mock providers for testing."""

from .store import TEST_VIEWER, MockStoreProvider
from .container import build_test_container

__all__ = [
    "MockStoreProvider",
    "TEST_VIEWER",
    "build_test_container",
]
