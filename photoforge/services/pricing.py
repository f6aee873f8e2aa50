"""
Pricing - Fixed crystal prices for billable operations.

These are business constants, not runtime settings.
"""

GENERATION_COST_PER_IMAGE = 3
TRAINING_COST = 50
SIGNUP_BONUS = 10

# Upper bound on images asked of the provider in one prompt
MAX_PROVIDER_IMAGES = 8


def generation_cost(requested_images: int) -> int:
    """Crystal cost of a generation, billed on the requested image count."""
    if requested_images < 1:
        raise ValueError(f"requested_images must be positive: {requested_images}")
    return GENERATION_COST_PER_IMAGE * requested_images


def provider_image_count(requested_images: int) -> int:
    """Images actually asked of the provider for one submission."""
    return max(1, min(requested_images, MAX_PROVIDER_IMAGES))
