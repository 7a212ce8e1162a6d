"""
Catalogue of the A/B test parameters used by the app

One descriptor per key. The defaults here are what users see when the
backend has never been reached or has no value for a key.
"""

from typing import List

from .models import BoolConfig, ConfigDescriptor, ConfigKey, IntConfig, StringConfig


class ABTestConfiguration:
    """Predefined descriptors, grouped by value type"""

    # String tests
    BUTTON_COLOR = StringConfig(key=ConfigKey.BUTTON_COLOR, default_value="blue")
    BUTTON_TEXT = StringConfig(key=ConfigKey.BUTTON_TEXT, default_value="Get Started")
    WELCOME_MESSAGE = StringConfig(key=ConfigKey.WELCOME_MESSAGE, default_value="Welcome to our app!")

    # Boolean tests
    FEATURE_ENABLED = BoolConfig(key=ConfigKey.FEATURE_ENABLED, default_value=False)

    # Integer tests
    MAX_ITEMS = IntConfig(key=ConfigKey.MAX_ITEMS, default_value=10)


def all_descriptors() -> List[ConfigDescriptor]:
    """Every descriptor in the catalogue, in ConfigKey order"""
    return [
        ABTestConfiguration.BUTTON_COLOR,
        ABTestConfiguration.BUTTON_TEXT,
        ABTestConfiguration.WELCOME_MESSAGE,
        ABTestConfiguration.FEATURE_ENABLED,
        ABTestConfiguration.MAX_ITEMS,
    ]
