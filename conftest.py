"""Root conftest.py for pytest.

Puts the project root on sys.path before any test imports and keeps the
test run away from the user's real session file.
"""
import os
import sys

# Add project root to path at startup - MUST happen at import time
project_root = os.path.dirname(os.path.abspath(__file__))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Never touch ~/.easytable from tests
os.environ.setdefault("EASYTABLE_STORAGE_ENABLED", "false")


def pytest_configure(config):
    """Configure pytest path early in the process."""
    if project_root not in sys.path:
        sys.path.insert(0, project_root)
