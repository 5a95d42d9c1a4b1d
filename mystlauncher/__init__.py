"""Settings, image and release update checks, and Docker container control for a node."""

__version__ = "1.0.0"