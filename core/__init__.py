"""
Core Infrastructure Module

Provides foundational services for the carriage simulator including:
- Event bus for telemetry and inter-module communication
- Configuration management
- Logging setup
- Custom exceptions
"""
