"""Test utilities for rewrite_rules applications::

    from rewrite_rules.testing import TestClient
"""

from rewrite_rules.testing.client import TestClient

__all__ = ["TestClient"]
