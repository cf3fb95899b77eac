# arimalab/version.py
"""
arimalab version information.

The package follows semantic versioning (MAJOR.MINOR.PATCH).
"""

# Version components
VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

# Full version string
__version__ = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"

# Package metadata
__title__ = "arimalab"
__description__ = "Simulation, estimation, diagnostics, forecasting and order selection for ARIMA models"
__license__ = "MIT"
