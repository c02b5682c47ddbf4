"""
Web Interface Module

HTTP command surface and telemetry endpoints for the simulator.
"""
