"""
Custom Exception Classes for Carriage Simulator

Defines hierarchical exception classes for the errors that can occur
outside the motion core: configuration loading, simulated link
acquisition and command transport. Precondition failures inside the
core are reported as CommandResult values, not raised.

Author: Carriage Simulator Development
Created: October 2026
"""

from typing import Optional


class SimulatorSystemError(Exception):
    """Base exception for all simulator errors"""

    def __init__(self, message: str, error_code: Optional[str] = None, module: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        self.module = module
        super().__init__(self.message)

    def __str__(self):
        parts = [self.message]
        if self.module:
            parts.append(f"Module: {self.module}")
        if self.error_code:
            parts.append(f"Code: {self.error_code}")
        return " | ".join(parts)


# Configuration Errors
class ConfigurationError(SimulatorSystemError):
    """Raised when configuration is invalid or missing"""
    pass


class ConfigurationNotFoundError(ConfigurationError):
    """Raised when configuration file is not found"""
    pass


class ConfigurationValidationError(ConfigurationError):
    """Raised when configuration values are invalid"""
    pass


# Hardware Link Errors
class HardwareError(SimulatorSystemError):
    """Base class for simulated hardware errors"""
    pass


class HardwareConnectionError(HardwareError):
    """Raised when the simulated hardware link cannot be acquired"""
    pass


# Motion Control Errors
class MotionControlError(HardwareError):
    """Base class for motion control errors"""
    pass


# Web Interface Errors
class WebInterfaceError(SimulatorSystemError):
    """Base class for web interface errors"""
    pass


class CommandValidationError(WebInterfaceError):
    """Raised when an inbound command body is malformed"""
    pass


class CommandTimeoutError(WebInterfaceError):
    """Raised when a command does not finish within the request timeout"""
    pass


def create_link_error(message: str, error_code: Optional[str] = None) -> HardwareConnectionError:
    """Factory function to create link acquisition errors"""
    return HardwareConnectionError(message, error_code=error_code, module="link")
