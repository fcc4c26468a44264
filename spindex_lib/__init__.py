"""
Silent Payments Block Indexer

An async, event-driven indexer that condenses confirmed Bitcoin blocks into
BIP-352 "silent blocks": per-transaction scan tweaks plus the taproot outputs
a light client needs to detect Silent Payments.
"""

__version__ = "0.1.0"
__author__ = "levinster82"
__license__ = "GPL-3.0"

__all__ = [
    "__version__",
    "__author__",
    "__license__",
]
