from __future__ import annotations

import pytest


@pytest.fixture
def subject() -> str:
    return "https://example.org/iiif/item-42/full/1200,/0/default.jpg"
