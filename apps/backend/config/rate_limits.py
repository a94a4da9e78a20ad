"""
Rate limit configuration for provider calls made while editing slides.

Adjust these settings based on your API tier and usage patterns.
"""

# Text model (slide editing) retry settings
TEXT_MODEL_RETRY = {
    "max_retries": 3,        # additional attempts after the first call
    "base_delay": 1.0,       # 1s, 2s, 4s
}

# Image generation retry settings (per image)
IMAGE_GENERATION_RETRY = {
    "max_attempts": 3,
    "base_delay": 1.0,       # 1s, 2s
}

# Pause between image requests for different usage scenarios (IMAGE_USAGE_PROFILE).
# Images within one edit are always generated one at a time.
USAGE_PROFILES = {
    "conservative": {
        "delay_between_images": 3.0,
        "description": "Long pauses - slowest but safest"
    },
    "balanced": {
        "delay_between_images": 2.0,
        "description": "Default pause"
    },
    "aggressive": {
        "delay_between_images": 0.5,
        "description": "Short pauses - fastest but may hit provider rate limits"
    },
}


def get_usage_profile(name: str) -> dict:
    """Return a usage profile, falling back to 'balanced'."""
    return USAGE_PROFILES.get(name, USAGE_PROFILES["balanced"])
