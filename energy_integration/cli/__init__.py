"""EnergyIntegration CLI - ``ei`` entry point."""
from .main import app, main

__all__ = ["app", "main"]
