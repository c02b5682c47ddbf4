"""
Configuration Manager for Carriage Simulator

Handles loading, validation, and management of simulator configuration
from YAML files. Provides type-safe access to configuration values
with validation and default fallbacks.

Author: Carriage Simulator Development
Created: October 2026
"""

import copy
import os
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass

from .exceptions import (
    ConfigurationError,
    ConfigurationNotFoundError,
    ConfigurationValidationError
)

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'system': {
        'name': 'Carriage Simulator',
        'log_level': 'INFO',
        'log_dir': None,
        'log_to_file': True,
        'settle_delay': 4.0,
    },
    'motion': {
        'nominal_speed': 600 / 200 * 20 * 2,
        'tick_period': 0.02,
        'telemetry_period': 0.2,
        'snap_epsilon': 2.4,
        'gate_on_motors': False,
        'frame_id': 'rvc',
        'homing': {
            'x_bound': -580.0,
            'y_bound': 300.0,
            'x_retract': -80.0,
            'step_factor': 0.2,
        },
        'tap_duration': 0.5,
    },
    'link': {
        'port': 'loop://',
        'baudrate': 115200,
        'timeout': 1.0,
    },
    'web_interface': {
        'enabled': True,
        'host': '0.0.0.0',
        'port': 5000,
        'command_timeout': 30.0,
    },
}


@dataclass
class HomingConfig:
    """Reference extremes and step size for the homing sweep"""
    x_bound: float
    y_bound: float
    x_retract: float
    step_factor: float


@dataclass
class MotionConfig:
    """Configuration for the motion simulator"""
    nominal_speed: float
    tick_period: float
    telemetry_period: float
    snap_epsilon: float
    gate_on_motors: bool
    frame_id: str
    tap_duration: float
    homing: HomingConfig


@dataclass
class LinkConfig:
    """Configuration for the simulated hardware link"""
    port: str
    baudrate: int
    timeout: float


@dataclass
class WebConfig:
    """Configuration for the HTTP command interface"""
    enabled: bool
    host: str
    port: int
    command_timeout: float


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    Centralized configuration management for the simulator

    Features:
    - YAML configuration file loading merged over built-in defaults
    - Type-safe configuration access
    - Configuration validation
    - Environment variable overrides
    - Configuration change detection
    """

    ENV_MAPPINGS = {
        'SIM_LOG_LEVEL': 'system.log_level',
        'SIM_SETTLE_DELAY': 'system.settle_delay',
        'SIM_LINK_PORT': 'link.port',
        'SIM_WEB_PORT': 'web_interface.port',
        'SIM_GATE_ON_MOTORS': 'motion.gate_on_motors',
    }

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file) if config_file is not None else None
        self._config_data: Dict[str, Any] = {}
        self._file_mtime: Optional[float] = None
        self._validated = False

        self.reload()

    def reload(self) -> bool:
        """
        Reload configuration from file

        Returns:
            True if reload successful

        Raises:
            ConfigurationNotFoundError: If the configured file does not exist
            ConfigurationError: If the file cannot be parsed or validated
        """
        if self.config_file is None:
            self._config_data = copy.deepcopy(DEFAULT_CONFIG)
            self._apply_env_overrides()
            self.validate()
            logger.info("Configuration loaded from built-in defaults")
            return True

        if not self.config_file.exists():
            raise ConfigurationNotFoundError(
                f"Configuration file not found: {self.config_file}"
            )

        current_mtime = self.config_file.stat().st_mtime
        if self._file_mtime == current_mtime and self._config_data:
            logger.debug("Configuration file unchanged, skipping reload")
            return True

        try:
            with open(self.config_file, 'r', encoding='utf-8') as file:
                file_data = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_file}: {e}")

        if not isinstance(file_data, dict):
            raise ConfigurationError(f"Top level of {self.config_file} must be a mapping")

        self._config_data = _merge(DEFAULT_CONFIG, file_data)
        self._file_mtime = current_mtime
        self._validated = False

        self._apply_env_overrides()
        self.validate()

        logger.info(f"Configuration loaded from {self.config_file}")
        return True

    def _apply_env_overrides(self):
        """Apply environment variable overrides to configuration"""
        for env_var, config_path in self.ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config_path, env_value)
                logger.debug(f"Applied environment override: {config_path} = {env_value}")

    def _set_nested_value(self, path: str, value: Any):
        """Set a nested configuration value using dot notation"""
        keys = path.split('.')
        current = self._config_data

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        # Convert string values to appropriate types
        if isinstance(value, str):
            if value.lower() in ('true', 'false'):
                value = value.lower() == 'true'
            elif value.isdigit():
                value = int(value)
            elif value.replace('.', '', 1).isdigit():
                value = float(value)

        current[keys[-1]] = value

    def validate(self) -> bool:
        """
        Validate configuration values

        Returns:
            True if validation successful

        Raises:
            ConfigurationValidationError: If validation fails
        """
        self._validate_system_config()
        self._validate_motion_config()
        self._validate_web_config()

        self._validated = True
        logger.debug("Configuration validation successful")
        return True

    def _validate_system_config(self):
        """Validate system configuration section"""
        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        log_level = self.get('system.log_level')
        if log_level not in valid_log_levels:
            raise ConfigurationValidationError(
                f"Invalid log level '{log_level}'. Must be one of: {valid_log_levels}"
            )

        if self._number('system.settle_delay') < 0:
            raise ConfigurationValidationError("system.settle_delay cannot be negative")

    def _validate_motion_config(self):
        """Validate motion simulator configuration"""
        for field in ('motion.nominal_speed', 'motion.tick_period',
                      'motion.telemetry_period', 'motion.tap_duration',
                      'motion.homing.step_factor'):
            if self._number(field) <= 0:
                raise ConfigurationValidationError(f"{field} must be positive")

        if self._number('motion.snap_epsilon') < 0:
            raise ConfigurationValidationError("motion.snap_epsilon cannot be negative")

        # Homing sweeps toward negative x and positive y
        x_bound = self._number('motion.homing.x_bound')
        y_bound = self._number('motion.homing.y_bound')
        if not x_bound < 0 < y_bound:
            raise ConfigurationValidationError(
                f"Invalid homing bounds x_bound={x_bound}, y_bound={y_bound}: "
                "x_bound must be negative and y_bound positive"
            )

    def _validate_web_config(self):
        """Validate web interface configuration"""
        port = self.get('web_interface.port', 5000)
        if not isinstance(port, int) or port < 1000 or port > 65535:
            raise ConfigurationValidationError(
                f"Invalid web port {port}. Must be between 1000-65535"
            )

    def _number(self, key: str) -> float:
        value = self.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationValidationError(f"{key} must be a number, got {value!r}")
        return float(value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation

        Args:
            key: Configuration key in dot notation (e.g., 'motion.homing.x_bound')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        try:
            value = self._config_data
            for k in key.split('.'):
                value = value[k]
            return value

        except (KeyError, TypeError):
            return default

    def get_motion_config(self) -> MotionConfig:
        """Get typed motion configuration"""
        homing = self.get('motion.homing')
        return MotionConfig(
            nominal_speed=float(self.get('motion.nominal_speed')),
            tick_period=float(self.get('motion.tick_period')),
            telemetry_period=float(self.get('motion.telemetry_period')),
            snap_epsilon=float(self.get('motion.snap_epsilon')),
            gate_on_motors=bool(self.get('motion.gate_on_motors')),
            frame_id=str(self.get('motion.frame_id')),
            tap_duration=float(self.get('motion.tap_duration')),
            homing=HomingConfig(
                x_bound=float(homing['x_bound']),
                y_bound=float(homing['y_bound']),
                x_retract=float(homing['x_retract']),
                step_factor=float(homing['step_factor']),
            )
        )

    def get_link_config(self) -> LinkConfig:
        """Get typed link configuration"""
        return LinkConfig(
            port=str(self.get('link.port')),
            baudrate=int(self.get('link.baudrate')),
            timeout=float(self.get('link.timeout'))
        )

    def get_web_config(self) -> WebConfig:
        """Get typed web interface configuration"""
        return WebConfig(
            enabled=bool(self.get('web_interface.enabled')),
            host=str(self.get('web_interface.host')),
            port=int(self.get('web_interface.port')),
            command_timeout=float(self.get('web_interface.command_timeout'))
        )

    def get_settle_delay(self) -> float:
        return float(self.get('system.settle_delay', 4.0))

    def has_changed(self) -> bool:
        """Check if configuration file has changed since last load"""
        if self.config_file is None or not self.config_file.exists():
            return False

        return self.config_file.stat().st_mtime != self._file_mtime

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration summary for logging/debugging"""
        return {
            'config_file': str(self.config_file) if self.config_file else None,
            'validated': self._validated,
            'log_level': self.get('system.log_level'),
            'link_port': self.get('link.port'),
            'gate_on_motors': self.get('motion.gate_on_motors'),
            'web_port': self.get('web_interface.port')
        }
