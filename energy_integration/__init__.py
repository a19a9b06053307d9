"""
EnergyIntegration: heat-exchanger-network design front end
==========================================================

Stream specification, validation and SI normalization for the external
HEN optimization backend. The engine lives in ``energy_integration.stream_spec``.
"""

from ._version import __version__

__author__ = "EnergyIntegration Team"
__license__ = "MIT"

__all__ = ["__version__"]
