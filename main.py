#!/usr/bin/env python3
"""
Two-Axis Carriage Simulator - Main Application Entry Point

Boots the simulated carriage controller the way the real device is
brought up: acquire the (simulated) serial link, let the device
settle, enable the motors and home once. Only then do telemetry and
the HTTP command surface start.

Author: Carriage Simulator Development
Created: October 2026
Python: 3.10+
"""

import sys
import asyncio
import signal
import argparse
import logging
from pathlib import Path
from typing import Optional

from core.config_manager import ConfigManager
from core.logging_setup import setup_logging
from core.events import EventBus, EventConstants, EventPriority
from core.exceptions import HardwareConnectionError, SimulatorSystemError
from motion.controller import SimulatedMotionController
from motion.link import SimulatedHardwareLink
from web.web_interface import SimulatorWebInterface

PROJECT_ROOT = Path(__file__).parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "simulator_config.yaml"

logger = logging.getLogger(__name__)


class SimulatorApplication:
    """Main application class for the carriage simulator"""

    def __init__(self, config_path: Optional[Path] = None, log_level: Optional[str] = None,
                 enable_web: Optional[bool] = None, host: Optional[str] = None,
                 port: Optional[int] = None):
        self.config_path = config_path
        self.log_level_override = log_level
        self.enable_web_override = enable_web
        self.host_override = host
        self.port_override = port

        self.config: Optional[ConfigManager] = None
        self.event_bus: Optional[EventBus] = None
        self.controller: Optional[SimulatedMotionController] = None
        self.link: Optional[SimulatedHardwareLink] = None
        self.web_interface: Optional[SimulatorWebInterface] = None
        self.running = False
        self.stop_requested = False

    def initialize(self):
        """Load configuration, set up logging and build the components"""
        self.config = ConfigManager(self.config_path)

        log_dir = self.config.get('system.log_dir')
        setup_logging(
            self.log_level_override or self.config.get('system.log_level', 'INFO'),
            log_dir=Path(log_dir) if log_dir else None,
            enable_file=bool(self.config.get('system.log_to_file', True))
        )
        logger.info("=== Carriage Simulator Starting ===")
        logger.debug(f"Configuration: {self.config.get_summary()}")

        self.event_bus = EventBus()
        self.controller = SimulatedMotionController(self.config.get_motion_config(), self.event_bus)

        link_config = self.config.get_link_config()
        self.link = SimulatedHardwareLink(link_config.port, link_config.baudrate, link_config.timeout)

    async def start_node(self):
        """
        Startup sequence

        Raises:
            HardwareConnectionError: If the simulated link cannot be opened
            WebInterfaceError: If the HTTP command surface cannot be bound
        """
        try:
            self.link.require()
        except HardwareConnectionError as e:
            self.event_bus.publish(EventConstants.SYSTEM_ERROR, {'error': str(e)},
                                   source_module="system", priority=EventPriority.CRITICAL)
            raise

        settle_delay = self.config.get_settle_delay()
        if settle_delay > 0:
            logger.info(f"Waiting {settle_delay:.1f}s for device to ready")
            await asyncio.sleep(settle_delay)

        self.controller.start_ticking()

        logger.info("Beginning homing sequence")
        await self.controller.set_motors(True)
        result = await self.controller.home()
        if result.success:
            logger.info("Homing successful.")
        else:
            logger.info("Homing failed.")

        self.controller.start_telemetry()

        web_config = self.config.get_web_config()
        enable_web = web_config.enabled if self.enable_web_override is None else self.enable_web_override
        if enable_web:
            self.web_interface = SimulatorWebInterface(
                self.controller, asyncio.get_running_loop(), self.event_bus,
                command_timeout=web_config.command_timeout
            )
            self.web_interface.start_web_server(
                host=self.host_override or web_config.host,
                port=self.port_override or web_config.port
            )

        self.running = True
        self.event_bus.publish(EventConstants.SYSTEM_STARTUP, {'homed': result.success},
                               source_module="system", priority=EventPriority.HIGH)
        logger.info("Carriage simulator ready")

    async def run(self) -> bool:
        """Initialize, start and idle until shutdown is requested"""
        try:
            self.initialize()
        except SimulatorSystemError as e:
            print(f"Critical error during initialization: {e}")
            return False

        try:
            await self.start_node()
            while self.running and not self.stop_requested:
                await asyncio.sleep(0.5)
        except SimulatorSystemError as e:
            logger.critical(str(e))
            return False
        finally:
            await self.shutdown()

        return True

    async def shutdown(self):
        """Gracefully shutdown the simulator"""
        logger.info("=== Carriage simulator shutting down ===")
        self.running = False

        if self.web_interface is not None:
            self.web_interface.stop_web_server()
            self.web_interface = None
        if self.controller is not None:
            await self.controller.stop()
        if self.link is not None:
            self.link.disconnect()
        if self.event_bus is not None:
            self.event_bus.publish(EventConstants.SYSTEM_SHUTDOWN, source_module="system",
                                   priority=EventPriority.HIGH)
            self.event_bus.shutdown()

        logger.info("Carriage simulator shutdown complete")

    def signal_handler(self, signum, frame):
        """Handle system signals for graceful shutdown"""
        logger.info(f"Received signal {signum}")
        self.stop_requested = True


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Two-axis carriage simulator")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None,
        help="YAML configuration file (default: config/simulator_config.yaml)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the configured logging level"
    )
    parser.add_argument("--host", default=None, help="Host for the HTTP command surface")
    parser.add_argument("--port", type=int, default=None, help="Port for the HTTP command surface")
    parser.add_argument(
        "--no-web",
        action="store_true",
        help="Run without the HTTP command surface"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point"""
    args = parse_args(argv)

    app = SimulatorApplication(
        config_path=args.config,
        log_level=args.log_level,
        enable_web=False if args.no_web else None,
        host=args.host,
        port=args.port
    )

    signal.signal(signal.SIGINT, app.signal_handler)
    signal.signal(signal.SIGTERM, app.signal_handler)

    try:
        success = asyncio.run(app.run())
    except Exception as e:
        print(f"Critical application error: {e}")
        return 1
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
