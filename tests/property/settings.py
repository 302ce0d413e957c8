# tests/property/settings.py
"""Standardized Hypothesis settings for property tests.

Usage:
    from tests.property.settings import STANDARD_SETTINGS

    @given(rows=csv_rows)
    @STANDARD_SETTINGS
    def test_something(rows):
        ...

Tiers:
- STANDARD_SETTINGS: 100 examples - Regular property tests
- QUICK_SETTINGS: 20 examples - Fast validation tests
"""

from hypothesis import settings

STANDARD_SETTINGS = settings(max_examples=100)

QUICK_SETTINGS = settings(max_examples=20)
