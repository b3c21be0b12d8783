"""Test utilities for wren applications::

    from wren.testing import TestClient
"""

from wren.testing.client import StreamResult, TestClient

__all__ = ["StreamResult", "TestClient"]
