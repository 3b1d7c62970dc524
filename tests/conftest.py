from __future__ import annotations

import os
import time

import pytest


@pytest.fixture()
def in_tz():
    """Run a test under a given TZ, restoring the original afterwards."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available")
    original = os.environ.get("TZ")

    def _set(tz: str) -> None:
        os.environ["TZ"] = tz
        time.tzset()

    yield _set

    if original is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = original
    time.tzset()
