"""
Flask Web Interface for the Carriage Simulator

HTTP transport for the command surface. Flask serves requests on
worker threads; every command is handed to the controller's event
loop with asyncio.run_coroutine_threadsafe so the carriage state is
only ever touched from that loop.

Author: Carriage Simulator Development
Created: October 2026
"""

import asyncio
import concurrent.futures
import logging
import math
import threading
from datetime import datetime
from typing import Any, Coroutine, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
from werkzeug.serving import make_server

from core.events import EventBus, EventConstants
from core.exceptions import CommandTimeoutError, CommandValidationError, WebInterfaceError
from core.types import CommandResult
from motion.controller import SimulatedMotionController

logger = logging.getLogger(__name__)


TELEMETRY_TOPICS = (EventConstants.SETPOINT_JS, EventConstants.GOAL_JS)


class CommandValidator:
    """Validates inbound command bodies"""

    @classmethod
    def validate_pair(cls, data: Optional[Dict[str, Any]], key: str = 'position') -> Tuple[float, float]:
        """Two finite numbers under `key`"""
        if not isinstance(data, dict) or key not in data:
            raise CommandValidationError(f"Missing '{key}' field")

        values = data[key]
        if not isinstance(values, (list, tuple)) or len(values) != 2:
            raise CommandValidationError(f"'{key}' must be a list of two numbers")

        return cls._finite(values[0], f"{key}[0]"), cls._finite(values[1], f"{key}[1]")

    @classmethod
    def validate_scale(cls, data: Optional[Dict[str, Any]]) -> float:
        """A single number under 'data'; range is clamped downstream, NaN is not"""
        if not isinstance(data, dict) or 'data' not in data:
            raise CommandValidationError("Missing 'data' field")

        value = data['data']
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CommandValidationError("'data' must be a number")
        value = cls._as_float(value, "'data'")
        if math.isnan(value):
            raise CommandValidationError("'data' cannot be NaN")
        return value

    @classmethod
    def validate_flag(cls, data: Optional[Dict[str, Any]]) -> bool:
        if not isinstance(data, dict) or 'data' not in data:
            raise CommandValidationError("Missing 'data' field")
        if not isinstance(data['data'], bool):
            raise CommandValidationError("'data' must be true or false")
        return data['data']

    @classmethod
    def _finite(cls, value: Any, name: str) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CommandValidationError(f"{name} must be a number")
        value = cls._as_float(value, name)
        if not math.isfinite(value):
            raise CommandValidationError(f"{name} must be finite")
        return value

    @staticmethod
    def _as_float(value: Any, name: str) -> float:
        # JSON integers are unbounded
        try:
            return float(value)
        except OverflowError:
            raise CommandValidationError(f"{name} is out of range")


class SimulatorWebInterface:
    """
    Flask application exposing the simulator command surface

    Args:
        controller: The simulated motion controller
        loop: Event loop the controller runs on
        event_bus: Bus carrying telemetry records
        command_timeout: Seconds to wait for a command (home can take a while)
    """

    def __init__(self, controller: SimulatedMotionController, loop: asyncio.AbstractEventLoop,
                 event_bus: EventBus, command_timeout: float = 30.0):
        self.controller = controller
        self.loop = loop
        self.event_bus = event_bus
        self.command_timeout = command_timeout
        self.logger = logger

        self.app = Flask(__name__)
        self._server = None
        self._server_thread: Optional[threading.Thread] = None

        self._setup_routes()

    def _submit(self, coro: Coroutine) -> Any:
        """
        Run a controller coroutine on its loop and wait for the result

        Raises:
            CommandTimeoutError: If it does not finish within command_timeout.
                The command itself keeps running on the loop.
        """
        command = coro.__name__
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        try:
            return future.result(timeout=self.command_timeout)
        except concurrent.futures.TimeoutError:
            raise CommandTimeoutError(f"{command} timed out after {self.command_timeout:g}s", module="web")

    def _respond(self, result: Optional[CommandResult] = None, **extra):
        body = {'success': True, 'message': '', 'timestamp': datetime.now().isoformat()}
        if result is not None:
            body.update(result.to_dict())
        body.update(extra)
        return jsonify(body)

    def _setup_routes(self):
        """Setup Flask routes"""

        @self.app.errorhandler(CommandValidationError)
        def handle_validation_error(e):
            self.logger.warning(f"Command validation failed on {request.path}: {e}")
            return jsonify({'success': False, 'error': str(e)}), 400

        @self.app.errorhandler(CommandTimeoutError)
        def handle_timeout(e):
            self.logger.warning(f"Command timed out on {request.path}: {e.message}")
            return jsonify({'success': False, 'error': e.message}), 408

        @self.app.errorhandler(Exception)
        def handle_unexpected_error(e):
            if isinstance(e, HTTPException):
                return e
            self.logger.error(f"API error on {request.path}: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

        @self.app.route('/api/move_jr', methods=['POST'])
        def api_move_relative():
            """Relative move"""
            dx, dy = CommandValidator.validate_pair(request.get_json(silent=True))
            return self._respond(self._submit(self.controller.move(dx, dy)))

        @self.app.route('/api/move_jp', methods=['POST'])
        def api_move_absolute():
            """Absolute move"""
            x, y = CommandValidator.validate_pair(request.get_json(silent=True))
            return self._respond(self._submit(self.controller.move_to(x, y)))

        @self.app.route('/api/velocity_scale', methods=['POST'])
        def api_velocity_scale():
            scale = CommandValidator.validate_scale(request.get_json(silent=True))
            self._submit(self.controller.velocity_scale(scale))
            return self._respond()

        @self.app.route('/api/halt', methods=['POST'])
        def api_halt():
            return self._respond(self._submit(self.controller.halt()))

        @self.app.route('/api/tap', methods=['POST'])
        def api_tap():
            """Blocks this request until the end effector is released"""
            return self._respond(self._submit(self.controller.tap()))

        @self.app.route('/api/home', methods=['POST'])
        def api_home():
            self.logger.info("🏠 Home requested over HTTP")
            result = self._submit(self.controller.home())
            self.logger.info(f"🏠 Home result: {result.message}")
            return self._respond(result)

        @self.app.route('/api/set_endeff', methods=['POST'])
        def api_set_endeff():
            down = CommandValidator.validate_flag(request.get_json(silent=True))
            return self._respond(self._submit(self.controller.set_endeff(down)))

        @self.app.route('/api/set_led', methods=['POST'])
        def api_set_led():
            on = CommandValidator.validate_flag(request.get_json(silent=True))
            return self._respond(self._submit(self.controller.set_led(on)))

        @self.app.route('/api/set_motors', methods=['POST'])
        def api_set_motors():
            on = CommandValidator.validate_flag(request.get_json(silent=True))
            return self._respond(self._submit(self.controller.set_motors(on)))

        @self.app.route('/api/status')
        def api_status():
            status = self._submit(self.controller.snapshot())
            return self._respond(data=status)

        @self.app.route('/api/telemetry/<topic>')
        def api_telemetry(topic: str):
            if topic not in TELEMETRY_TOPICS:
                return jsonify({'success': False, 'error': f"Unknown topic '{topic}'"}), 404

            event = self.event_bus.get_latest(topic)
            return self._respond(data=event.data if event else None)

    def start_web_server(self, host: str = '0.0.0.0', port: int = 5000):
        """Serve the Flask app on a background thread"""
        try:
            self._server = make_server(host, port, self.app, threaded=True)
        except (OSError, SystemExit):
            # werkzeug exits the process when the port cannot be bound
            raise WebInterfaceError(f"Could not bind web interface to {host}:{port}",
                                    error_code="WEB001", module="web")
        self._server_thread = threading.Thread(
            target=self._server.serve_forever, name="web-interface", daemon=True
        )
        self._server_thread.start()
        self.logger.info(f"🌐 Web interface listening on http://{host}:{port}")

    def stop_web_server(self):
        if self._server is None:
            return

        self.logger.info("Stopping web interface")
        self._server.shutdown()
        if self._server_thread is not None:
            self._server_thread.join(timeout=5.0)
        self._server = None
        self._server_thread = None
