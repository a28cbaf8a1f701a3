"""Test utilities for atrium applications.

    from atrium.testing import TestClient, write_page
"""

from atrium.testing.client import TestClient
from atrium.testing.content import write_page

__all__ = ["TestClient", "write_page"]
