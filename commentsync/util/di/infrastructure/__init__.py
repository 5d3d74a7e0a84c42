"""Infrastructure providers."""

# Import bases
from .store import StoreProvider

# Import implementations (needed for __subclasses__())
from .store import ProdStoreProvider  # noqa: F401

__all__ = [
    "ProdStoreProvider",
    "StoreProvider",
]
