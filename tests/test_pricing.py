"""
Tests for crystal pricing.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from photoforge.services.pricing import (
    GENERATION_COST_PER_IMAGE,
    MAX_PROVIDER_IMAGES,
    SIGNUP_BONUS,
    TRAINING_COST,
    generation_cost,
    provider_image_count,
)


class TestPrices:
    """Fixed business prices."""

    def test_constants(self) -> None:
        assert GENERATION_COST_PER_IMAGE == 3
        assert TRAINING_COST == 50
        assert SIGNUP_BONUS == 10

    def test_four_images_cost_twelve(self) -> None:
        assert generation_cost(4) == 12

    def test_billed_on_requested_count_beyond_provider_cap(self) -> None:
        assert generation_cost(12) == 36
        assert provider_image_count(12) == MAX_PROVIDER_IMAGES

    @pytest.mark.parametrize("requested", [0, -1])
    def test_non_positive_count_rejected(self, requested: int) -> None:
        with pytest.raises(ValueError):
            generation_cost(requested)


class TestProviderImageCount:
    """Images actually requested from the provider."""

    @given(st.integers(min_value=1, max_value=1000))
    def test_always_within_provider_bounds(self, requested: int) -> None:
        count = provider_image_count(requested)
        assert 1 <= count <= MAX_PROVIDER_IMAGES
        assert count == min(requested, MAX_PROVIDER_IMAGES)
