"""Bloomworks - themed message-to-image submissions (flowers, fish, birds)."""

__version__ = "0.3.0"

from bloomworks.core.config import BloomworksConfig, config
from bloomworks.core.themes import ThemeConfig, theme_registry

__all__ = [
    "BloomworksConfig",
    "config",
    "ThemeConfig",
    "theme_registry",
]
