'''
Configuration management for arimalab.

Behaviour that a caller may want to tune without touching code (optimizer
bounds, burn-in policy, interval coverage, selection criterion, logging) lives
in small dataclass sections. Values are resolved in layers:

1. Defaults built into the dataclasses below
2. An optional JSON file named by the ARIMALAB_CONFIG_FILE environment variable
3. Environment variables of the form ARIMALAB_<SECTION>_<OPTION>
4. Runtime modifications through set_config

Every component also accepts an explicit section object, so a single call can
override the global configuration without mutating it.
'''

import os
import json
import logging
from dataclasses import dataclass, field, asdict, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .exceptions import ConfigurationError
from .types import Criterion, LogLevel

# Set up module-level logger
logger = logging.getLogger("arimalab.core.config")

CONFIG_ENV_PREFIX = "ARIMALAB_"
CONFIG_FILE_ENV = "ARIMALAB_CONFIG_FILE"

VALID_OPTIMIZERS = ("BFGS", "L-BFGS-B", "Nelder-Mead", "Powell", "CG")
VALID_CRITERIA = ("aic", "aicc", "bic")
VALID_UNIT_ROOT_TESTS = ("kpss", "adf")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigSection(Enum):
    """Enumeration of configuration sections."""
    ESTIMATION = "estimation"
    SIMULATION = "simulation"
    FORECAST = "forecast"
    SELECTION = "selection"
    LOGGING = "logging"


def _require(condition: bool, section: str, option: str, value: Any, constraint: str) -> None:
    if not condition:
        raise ConfigurationError(
            f"Invalid value for {section}.{option}: {value!r}",
            section=section,
            option=option,
            value=value,
            details=constraint
        )


@dataclass
class EstimationConfig:
    """
    Settings for maximum-likelihood estimation.

    Attributes:
        optimizer: scipy.optimize.minimize method used for likelihood refinement
        max_iterations: Hard iteration bound for the likelihood optimizer
        tolerance: Gradient tolerance passed to the optimizer
        gradient_tolerance: Largest gradient norm (per observation) accepted when
            the optimizer stops without reporting success
        invertibility_margin: Root moduli below this value trigger a ModelWarning
        css_max_iterations: Iteration bound for conditional-sum-of-squares seeding
    """
    optimizer: str = "BFGS"
    max_iterations: int = 500
    tolerance: float = 1e-8
    gradient_tolerance: float = 1e-3
    invertibility_margin: float = 1.01
    css_max_iterations: int = 200

    def __post_init__(self) -> None:
        _require(self.optimizer in VALID_OPTIMIZERS, "estimation", "optimizer",
                 self.optimizer, f"Must be one of {VALID_OPTIMIZERS}")
        _require(isinstance(self.max_iterations, int) and self.max_iterations > 0,
                 "estimation", "max_iterations", self.max_iterations, "Must be a positive integer")
        _require(isinstance(self.css_max_iterations, int) and self.css_max_iterations > 0,
                 "estimation", "css_max_iterations", self.css_max_iterations,
                 "Must be a positive integer")
        _require(self.tolerance > 0, "estimation", "tolerance", self.tolerance, "Must be positive")
        _require(self.gradient_tolerance > 0, "estimation", "gradient_tolerance",
                 self.gradient_tolerance, "Must be positive")
        _require(self.invertibility_margin >= 1.0, "estimation", "invertibility_margin",
                 self.invertibility_margin, "Must be at least 1.0")


@dataclass
class SimulationConfig:
    """
    Settings for series simulation.

    The number of discarded start-up samples is
    ``burn_in_multiplier * (p + q) + burn_in_offset``.

    Attributes:
        burn_in_multiplier: Burn-in samples per AR/MA coefficient
        burn_in_offset: Fixed number of additional burn-in samples
    """
    burn_in_multiplier: int = 10
    burn_in_offset: int = 50

    def __post_init__(self) -> None:
        _require(isinstance(self.burn_in_multiplier, int) and self.burn_in_multiplier >= 0,
                 "simulation", "burn_in_multiplier", self.burn_in_multiplier,
                 "Must be a non-negative integer")
        _require(isinstance(self.burn_in_offset, int) and self.burn_in_offset >= 0,
                 "simulation", "burn_in_offset", self.burn_in_offset,
                 "Must be a non-negative integer")

    def burn_in(self, p: int, q: int) -> int:
        """Number of start-up samples to discard for an ARMA(p, q) simulation."""
        return self.burn_in_multiplier * (p + q) + self.burn_in_offset


@dataclass
class ForecastConfig:
    """
    Settings for forecasting.

    Attributes:
        confidence_level: Coverage of the prediction intervals
        unit_root_tolerance: Fitted AR roots with modulus below
            ``1 + unit_root_tolerance`` are treated as unit roots
    """
    confidence_level: float = 0.95
    unit_root_tolerance: float = 1e-3

    def __post_init__(self) -> None:
        _require(0 < self.confidence_level < 1, "forecast", "confidence_level",
                 self.confidence_level, "0 < confidence_level < 1")
        _require(self.unit_root_tolerance >= 0, "forecast", "unit_root_tolerance",
                 self.unit_root_tolerance, "Must be non-negative")


@dataclass
class SelectionConfig:
    """
    Settings for the order search.

    Attributes:
        criterion: Information criterion used for ranking ("aic", "aicc", "bic")
        penalty_multiplier: Multiplier applied to the criterion's complexity
            penalty; values above 1 bias the ranking towards smaller models
        max_workers: Number of worker threads used to fit candidates
        unit_root_test: Test used to choose d when the caller does not fix it
        alpha: Significance level of the unit-root test
    """
    criterion: Criterion = "aic"
    penalty_multiplier: float = 1.0
    max_workers: int = 1
    unit_root_test: str = "kpss"
    alpha: float = 0.05

    def __post_init__(self) -> None:
        self.criterion = str(self.criterion).lower()
        self.unit_root_test = str(self.unit_root_test).lower()
        _require(self.criterion in VALID_CRITERIA, "selection", "criterion",
                 self.criterion, f"Must be one of {VALID_CRITERIA}")
        _require(self.penalty_multiplier > 0, "selection", "penalty_multiplier",
                 self.penalty_multiplier, "Must be positive")
        _require(isinstance(self.max_workers, int) and self.max_workers >= 1,
                 "selection", "max_workers", self.max_workers, "Must be a positive integer")
        _require(self.unit_root_test in VALID_UNIT_ROOT_TESTS, "selection", "unit_root_test",
                 self.unit_root_test, f"Must be one of {VALID_UNIT_ROOT_TESTS}")
        _require(0 < self.alpha < 1, "selection", "alpha", self.alpha, "0 < alpha < 1")


@dataclass
class LoggingConfig:
    """
    Logging settings for the package logger.

    Attributes:
        level: Level of the "arimalab" logger
        format: Format string for log messages
    """
    level: LogLevel = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self) -> None:
        self.level = str(self.level).upper()
        _require(self.level in VALID_LOG_LEVELS, "logging", "level", self.level,
                 f"Must be one of {VALID_LOG_LEVELS}")


@dataclass
class ArimaLabConfig:
    """
    Complete configuration, one attribute per section.
    """
    estimation: EstimationConfig = field(default_factory=EstimationConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTION_TYPES = {
    "estimation": EstimationConfig,
    "simulation": SimulationConfig,
    "forecast": ForecastConfig,
    "selection": SelectionConfig,
    "logging": LoggingConfig,
}


def _coerce(value: Any, current: Any) -> Any:
    """Convert a raw (usually string) value to the type of the current value."""
    if isinstance(current, bool):
        if isinstance(value, str):
            return value.lower() in ("true", "yes", "1", "y")
        return bool(value)
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


class ConfigManager:
    """
    Configuration manager holding the process-wide configuration.

    Attributes:
        _config: The current configuration object
        _initialized: Whether file and environment layers have been applied
        _modified_keys: Options changed at runtime through set()
    """

    def __init__(self) -> None:
        self._config = ArimaLabConfig()
        self._initialized = False
        self._config_file: Optional[Path] = None
        self._modified_keys: set = set()

    def initialize(self) -> None:
        """Apply the file and environment layers once."""
        if self._initialized:
            return

        config_file = os.environ.get(CONFIG_FILE_ENV)
        if config_file:
            self.load_file(config_file)

        self._apply_env_overrides()
        self._setup_logging()
        self._initialized = True
        logger.debug("Configuration manager initialized")

    def load_file(self, path: Union[str, Path]) -> None:
        """
        Update the configuration from a JSON file.

        The file holds one object per section, e.g.
        ``{"estimation": {"max_iterations": 1000}}``.

        Raises:
            ConfigurationError: If the file cannot be read or holds invalid values
        """
        path = Path(path)
        try:
            with open(path, "r") as f:
                contents = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load configuration file {path}",
                details=str(e)
            ) from e

        if not isinstance(contents, dict):
            raise ConfigurationError(
                f"Configuration file {path} must contain a JSON object",
                value=type(contents).__name__
            )

        for section, options in contents.items():
            if not isinstance(options, dict):
                raise ConfigurationError(
                    f"Section {section!r} in {path} must be a JSON object",
                    section=section
                )
            for option, value in options.items():
                self._set(section, option, value)

        self._config_file = path
        logger.debug(f"Loaded configuration from {path}")

    def _apply_env_overrides(self) -> None:
        """Apply ARIMALAB_<SECTION>_<OPTION> environment variables."""
        for env_var, value in os.environ.items():
            if not env_var.startswith(CONFIG_ENV_PREFIX) or env_var == CONFIG_FILE_ENV:
                continue

            key = env_var[len(CONFIG_ENV_PREFIX):]
            parts = key.lower().split("_", 1)
            if len(parts) != 2:
                continue

            section, option = parts
            try:
                ConfigSection(section)
            except ValueError:
                continue

            if not self.has_option(section, option):
                logger.warning(f"Ignoring unknown configuration variable {env_var}")
                continue

            self._set(section, option, value)
            logger.debug(f"Applied environment override: {env_var}={value}")

    def _setup_logging(self) -> None:
        """Attach a stream handler with the configured level and format to the package logger."""
        package_logger = logging.getLogger("arimalab")

        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)

        package_logger.setLevel(getattr(logging, self._config.logging.level))
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(fmt=self._config.logging.format))
        package_logger.addHandler(console_handler)

    def _set(self, section: str, option: str, value: Any) -> None:
        if not self.has_option(section, option):
            raise ConfigurationError(
                f"Unknown configuration option {section}.{option}",
                section=section,
                option=option
            )

        current_section = getattr(self._config, section)
        current_value = getattr(current_section, option)
        try:
            typed_value = _coerce(value, current_value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Cannot convert {value!r} for {section}.{option}",
                section=section,
                option=option,
                value=value,
                details=str(e)
            ) from e

        # Rebuilding the section re-runs its validation
        new_section = replace(current_section, **{option: typed_value})
        setattr(self._config, section, new_section)

    def get(self, section: str, option: str, default: Any = None) -> Any:
        """Get a configuration value, or ``default`` if it does not exist."""
        if not self.has_option(section, option):
            return default
        return getattr(getattr(self._config, section), option)

    def set(self, section: str, option: str, value: Any) -> None:
        """
        Set a configuration value at runtime.

        Raises:
            ConfigurationError: If the option is unknown or the value invalid
        """
        self._set(section, option, value)
        self._modified_keys.add(f"{section}.{option}")
        if section == "logging":
            self._setup_logging()

    def reset(self, section: Optional[str] = None) -> None:
        """Reset one section, or the whole configuration, to defaults."""
        if section is None:
            self._config = ArimaLabConfig()
            self._modified_keys.clear()
            self._setup_logging()
            return

        if not self.has_section(section):
            raise ConfigurationError(f"Unknown configuration section {section!r}",
                                     section=section)
        setattr(self._config, section, _SECTION_TYPES[section]())
        self._modified_keys = {k for k in self._modified_keys
                               if not k.startswith(f"{section}.")}
        if section == "logging":
            self._setup_logging()

    def has_section(self, section: str) -> bool:
        return section in _SECTION_TYPES

    def has_option(self, section: str, option: str) -> bool:
        if not self.has_section(section):
            return False
        return option in {f.name for f in fields(_SECTION_TYPES[section])}

    def get_sections(self) -> List[str]:
        return list(_SECTION_TYPES)

    def get_section(self, section: str) -> Any:
        """Get a copy of a configuration section."""
        if not self.has_section(section):
            raise ConfigurationError(f"Unknown configuration section {section!r}",
                                     section=section)
        return replace(getattr(self._config, section))

    def get_modified_options(self) -> List[str]:
        return sorted(self._modified_keys)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self._config)


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    """Get the process-wide configuration manager, initializing it on first use."""
    _config_manager.initialize()
    return _config_manager


def get_config(section: str, option: str, default: Any = None) -> Any:
    return get_config_manager().get(section, option, default)


def set_config(section: str, option: str, value: Any) -> None:
    get_config_manager().set(section, option, value)


def reset_config(section: Optional[str] = None) -> None:
    get_config_manager().reset(section)


def get_estimation_config() -> EstimationConfig:
    return get_config_manager().get_section("estimation")


def get_simulation_config() -> SimulationConfig:
    return get_config_manager().get_section("simulation")


def get_forecast_config() -> ForecastConfig:
    return get_config_manager().get_section("forecast")


def get_selection_config() -> SelectionConfig:
    return get_config_manager().get_section("selection")


def get_logging_config() -> LoggingConfig:
    return get_config_manager().get_section("logging")
