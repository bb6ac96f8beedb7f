"""AdPulse marketing metrics service"""

__version__ = "1.0.0"
