import threading
import time

from filesort.sort.controller import ServiceController, ServiceState


def test_initial_state_is_running():
    controller = ServiceController()
    assert controller.state is ServiceState.RUNNING
    assert controller.should_continue()


def test_request_stop():
    controller = ServiceController()
    controller.request_stop()
    assert controller.state is ServiceState.STOP_REQUESTED
    assert not controller.should_continue()


def test_request_stop_is_idempotent():
    controller = ServiceController()
    controller.request_stop()
    controller.request_stop()
    assert controller.state is ServiceState.STOP_REQUESTED


def test_reset_clears_stop_request():
    controller = ServiceController()
    controller.request_stop()
    controller.reset()
    assert controller.state is ServiceState.RUNNING
    assert controller.wait(0.01)


def test_wait_returns_true_after_timeout():
    assert ServiceController().wait(0.01)


def test_wait_is_interrupted_by_stop_from_another_thread():
    controller = ServiceController()
    timer = threading.Timer(0.05, controller.request_stop)
    timer.start()
    started = time.monotonic()

    assert not controller.wait(10)
    assert time.monotonic() - started < 5
    timer.join()
