from . import config, conversions, fonts, health

__all__ = ["config", "conversions", "fonts", "health"]
