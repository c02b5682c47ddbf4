"""
Test Flask Web Interface

The controller runs on an event loop in a background thread, as it does
in the application; requests go through Flask's test client.
"""

import asyncio
import threading
from unittest.mock import patch

import pytest

from core.events import EventBus
from core.exceptions import WebInterfaceError
from core.types import Position2D
from motion.controller import SimulatedMotionController
from web.web_interface import SimulatorWebInterface


@pytest.fixture
def loop():
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    yield loop
    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=5.0)
    loop.close()


def run_on(loop, coro, timeout=10.0):
    return asyncio.run_coroutine_threadsafe(coro, loop).result(timeout=timeout)


@pytest.fixture
def web(loop, motion_config):
    event_bus = EventBus()
    controller = SimulatedMotionController(motion_config, event_bus)

    async def start():
        controller.start_ticking()

    run_on(loop, start())
    interface = SimulatorWebInterface(controller, loop, event_bus, command_timeout=10.0)
    interface.app.config['TESTING'] = True
    yield interface
    run_on(loop, controller.stop())


@pytest.fixture
def client(web):
    return web.app.test_client()


class TestMoveCommands:

    def test_absolute_move(self, client, web):
        response = client.post('/api/move_jp', json={'position': [-300, 150]})

        assert response.status_code == 200
        assert response.get_json()['success']
        assert web.controller.state.goal == Position2D(-300.0, 150.0)

    def test_relative_move(self, client, web):
        client.post('/api/move_jp', json={'position': [10, 10]})
        client.post('/api/move_jr', json={'position': [-5, 2.5]})

        assert web.controller.state.goal == Position2D(5.0, 12.5)

    @pytest.mark.parametrize("body", [
        None,
        {},
        {'position': [1]},
        {'position': [1, 2, 3]},
        {'position': ['a', 2]},
        {'position': [True, 2]},
        {'position': 5},
        {'position': [10 ** 400, 0]},
        {'position': [0, -10 ** 400]},
    ])
    def test_malformed_bodies_rejected(self, client, web, body):
        response = client.post('/api/move_jp', json=body)

        assert response.status_code == 400
        assert not response.get_json()['success']
        assert web.controller.state.goal == Position2D(0.0, 0.0)

    def test_non_finite_position_rejected(self, client):
        response = client.post('/api/move_jp', data='{"position": [NaN, 1]}',
                               content_type='application/json')
        assert response.status_code == 400


class TestScaleAndActuators:

    @pytest.mark.parametrize("value,expected", [(0.5, 0.5), (3, 1.0), (-1, 0.0)])
    def test_velocity_scale_clamped(self, client, web, value, expected):
        response = client.post('/api/velocity_scale', json={'data': value})

        assert response.status_code == 200
        assert web.controller.state.v_scale == expected

    @pytest.mark.parametrize("body", ['{"data": NaN}', '{"data": 1' + '0' * 400 + '}'])
    def test_unusable_velocity_scale_rejected(self, client, web, body):
        response = client.post('/api/velocity_scale', data=body,
                               content_type='application/json')

        assert response.status_code == 400
        assert web.controller.state.v_scale == 1.0

    @pytest.mark.parametrize("route,flag,message", [
        ('/api/set_endeff', True, "End Effector Pressed"),
        ('/api/set_endeff', False, "End Effector Released"),
        ('/api/set_led', True, "LED Lit"),
        ('/api/set_led', False, "LED Off"),
        ('/api/set_motors', True, "Motors Enabled"),
        ('/api/set_motors', False, "Motors Disabled"),
    ])
    def test_actuator_messages(self, client, route, flag, message):
        response = client.post(route, json={'data': flag})

        body = response.get_json()
        assert body['success']
        assert body['message'] == message

    def test_flag_must_be_boolean(self, client):
        response = client.post('/api/set_led', json={'data': 1})
        assert response.status_code == 400


class TestLongCommands:

    def test_home_with_motors_off_fails(self, client):
        response = client.post('/api/home')

        body = response.get_json()
        assert response.status_code == 200
        assert not body['success']
        assert body['message'] == "Failed to home."

    def test_home_succeeds_with_motors_on(self, client, web):
        client.post('/api/set_motors', json={'data': True})
        response = client.post('/api/home')

        body = response.get_json()
        assert body['success']
        assert body['message'] == "Successfully homed."
        assert web.controller.state.goal == Position2D(0.0, 0.0)

    def test_slow_home_times_out_with_408(self, client, web):
        client.post('/api/set_motors', json={'data': True})
        client.post('/api/velocity_scale', json={'data': 0.01})
        web.command_timeout = 0.3

        response = client.post('/api/home')

        body = response.get_json()
        assert response.status_code == 408
        assert not body['success']
        assert "home timed out" in body['error']
        assert web.controller.homing_in_progress

        second = client.post('/api/home').get_json()
        assert second['message'] == "Homing already in progress"

    def test_tap_blocks_until_release(self, client, web):
        response = client.post('/api/tap')

        assert response.get_json()['message'] == "Tapped"
        assert not web.controller.state.actuators.endeff_down

    def test_halt(self, client, web):
        client.post('/api/move_jp', json={'position': [500, 0]})
        response = client.post('/api/halt')

        assert response.get_json()['success']
        goal = web.controller.state.goal
        assert goal.x < 500.0


class TestQueries:

    def test_status(self, client):
        body = client.get('/api/status').get_json()

        assert body['success']
        assert body['data']['position'] == {'x': 0.0, 'y': 0.0}
        assert body['data']['motors_on'] is False

    def test_unknown_telemetry_topic(self, client):
        response = client.get('/api/telemetry/odometry')
        assert response.status_code == 404

    def test_telemetry_before_any_record(self, client):
        body = client.get('/api/telemetry/goal_js').get_json()
        assert body['data'] is None

    def test_latest_setpoint_record(self, client, web, loop):
        async def publish():
            return web.controller.publish_telemetry()

        record = run_on(loop, publish())
        body = client.get('/api/telemetry/setpoint_js').get_json()

        assert body['data']['header']['seq'] == record.seq
        assert body['data']['header']['frame_id'] == "rvc"

    def test_unknown_route_is_404(self, client):
        assert client.get('/api/nothing').status_code == 404


class TestServer:

    def test_bind_failure_raises_web_error(self, web):
        with patch("web.web_interface.make_server", side_effect=SystemExit(1)):
            with pytest.raises(WebInterfaceError) as exc_info:
                web.start_web_server("127.0.0.1", 5999)

        assert exc_info.value.error_code == "WEB001"
        assert web._server_thread is None
