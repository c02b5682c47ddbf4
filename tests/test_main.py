"""
Test Application Startup
"""

from unittest.mock import patch

import pytest

import main
from core.events import EventConstants
from core.exceptions import HardwareConnectionError
from core.types import Position2D


def write_config(tmp_path, port="loop://", web_enabled=False):
    config_file = tmp_path / "simulator.yaml"
    config_file.write_text(
        "system:\n"
        "  settle_delay: 0\n"
        "  log_to_file: false\n"
        "motion:\n"
        "  tick_period: 0.002\n"
        "link:\n"
        f"  port: '{port}'\n"
        "  timeout: 0.1\n"
        "web_interface:\n"
        f"  enabled: {str(web_enabled).lower()}\n"
        "  port: 5999\n"
    )
    return config_file


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    for name in ("SIM_LOG_LEVEL", "SIM_SETTLE_DELAY", "SIM_LINK_PORT", "SIM_WEB_PORT", "SIM_GATE_ON_MOTORS"):
        monkeypatch.delenv(name, raising=False)
    with patch("main.setup_logging"):
        yield


class TestStartup:

    @pytest.mark.asyncio
    async def test_start_node_enables_motors_and_homes(self, tmp_path):
        app = main.SimulatorApplication(config_path=write_config(tmp_path))
        app.initialize()

        try:
            await app.start_node()

            assert app.running
            assert app.link.is_connected()
            assert app.controller.state.actuators.motors_on
            assert app.controller.state.goal == Position2D(0.0, 0.0)
            assert app.event_bus.get_latest(EventConstants.MOTION_HOME_COMPLETE) is not None
            startup = app.event_bus.get_latest(EventConstants.SYSTEM_STARTUP)
            assert startup.data == {'homed': True}
            assert app.web_interface is None
        finally:
            await app.shutdown()

        assert not app.running
        assert not app.link.is_connected()

    @pytest.mark.asyncio
    async def test_missing_link_aborts_before_homing(self, tmp_path):
        app = main.SimulatorApplication(config_path=write_config(tmp_path, port="bogus://x"))

        assert await app.run() is False
        assert app.controller.homing is None
        assert app.controller.last_homing is None
        assert not app.controller.state.actuators.motors_on

    @pytest.mark.asyncio
    async def test_missing_link_publishes_system_error(self, tmp_path):
        app = main.SimulatorApplication(config_path=write_config(tmp_path, port="bogus://x"))
        app.initialize()
        errors = []
        app.event_bus.subscribe(EventConstants.SYSTEM_ERROR, errors.append, "test")

        with pytest.raises(HardwareConnectionError):
            await app.start_node()

        assert len(errors) == 1
        assert "bogus://x" in errors[0].data['error']
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_web_bind_failure_still_shuts_down(self, tmp_path):
        app = main.SimulatorApplication(config_path=write_config(tmp_path, web_enabled=True))

        with patch("web.web_interface.make_server", side_effect=SystemExit(1)):
            assert await app.run() is False

        assert not app.running
        assert not app.link.is_connected()
        assert app.controller._tasks == []
        assert app.event_bus.get_stats()['history_size'] == 0

    @pytest.mark.asyncio
    async def test_missing_config_fails_initialization(self, tmp_path):
        app = main.SimulatorApplication(config_path=tmp_path / "absent.yaml")
        assert await app.run() is False

    @pytest.mark.asyncio
    async def test_run_returns_after_stop_request(self, tmp_path):
        app = main.SimulatorApplication(config_path=write_config(tmp_path))
        app.stop_requested = True

        assert await app.run() is True
        assert not app.running


class TestArguments:

    def test_defaults(self):
        args = main.parse_args([])
        assert args.log_level is None
        assert args.no_web is False

    def test_overrides(self, tmp_path):
        args = main.parse_args(["--config", str(tmp_path / "c.yaml"), "--log-level", "DEBUG",
                                "--port", "8080", "--no-web"])
        assert args.config == tmp_path / "c.yaml"
        assert args.log_level == "DEBUG"
        assert args.port == 8080
        assert args.no_web


class TestEntryPoint:

    def test_unexpected_error_returns_failure(self, tmp_path):
        def fail(coro):
            coro.close()
            raise RuntimeError("event loop failure")

        with patch("main.asyncio.run", side_effect=fail), patch("main.signal.signal"):
            assert main.main(["--config", str(write_config(tmp_path)), "--no-web"]) == 1

    def test_clean_run_returns_success(self, tmp_path):
        def succeed(coro):
            coro.close()
            return True

        with patch("main.asyncio.run", side_effect=succeed), patch("main.signal.signal"):
            assert main.main(["--config", str(write_config(tmp_path))]) == 0
