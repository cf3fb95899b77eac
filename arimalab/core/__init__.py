"""
arimalab core module

Exception hierarchy, configuration management and shared type aliases used
by every other part of the package.
"""

import logging

# Set up module-level logger
logger = logging.getLogger("arimalab.core")

from .exceptions import (
    ArimaLabError,
    InvalidSpecError,
    ConvergenceError,
    SingularInformationError,
    ModelNotStationaryError,
    DataError,
    ForecastError,
    ModelSelectionError,
    ConfigurationError,
    ArimaLabWarning,
    ConvergenceWarning,
    ModelWarning,
)
from .config import (
    ArimaLabConfig,
    EstimationConfig,
    SimulationConfig,
    ForecastConfig,
    SelectionConfig,
    LoggingConfig,
    ConfigManager,
    get_config_manager,
    get_config,
    set_config,
    reset_config,
)
