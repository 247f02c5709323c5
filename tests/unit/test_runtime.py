"""Test Runtime composition and lifecycle."""

import pytest

from eventcore.core.config import Settings
from eventcore.core.errors import ConfigError, QueueClosedError
from eventcore.loader import FILE_LOADED
from eventcore.runtime import Runtime

TIMEOUT = 5.0


class TestRuntimeComposition:
    def test_components_wired(self, runtime):
        assert runtime.loader is not None
        assert runtime.reverse_dispatcher.queue is runtime.pool.concurrent_queue()
        assert runtime.settings.queue.max_workers == 4

    def test_each_runtime_owns_its_bus(self, sim_clock):
        with Runtime(clock=sim_clock) as a, Runtime(clock=sim_clock) as b:
            assert a.bus is not b.bus
            received = []
            b.bus.subscribe("e", received.append)
            a.bus.post_named("e")
            assert received == []

    def test_invalid_settings_rejected(self):
        with pytest.raises(ConfigError):
            Runtime(Settings(queue={"max_workers": 0}))

    def test_from_config(self, tmp_path, sim_clock):
        path = tmp_path / "eventcore.toml"
        path.write_text("[loader]\nper_item_latency_seconds = 0.5\n")
        with Runtime.from_config(path, clock=sim_clock) as rt:
            rt.loader.load_all(["a", "b"], on="cfg").wait(TIMEOUT)
            assert sim_clock.sleeps == [0.5, 0.5]

    def test_logging_configured_on_request(self, sim_clock):
        import structlog

        settings = Settings(observability={"configure_logging": True, "log_format": "console"})
        try:
            with Runtime(settings, clock=sim_clock):
                assert structlog.is_configured()
        finally:
            structlog.reset_defaults()


class TestRuntimeLifecycle:
    def test_drain(self, runtime):
        received = []
        runtime.bus.subscribe(FILE_LOADED, received.append, source=runtime.loader)
        runtime.loader.load_one("a")
        runtime.loader.load_all(["x", "y"], on="drain")
        assert runtime.drain(TIMEOUT)
        assert len(received) == 1
        assert runtime.loader.preloaded == ["x", "y"]

    def test_new_loader_shares_bus_and_clock(self, runtime, sim_clock):
        loader = runtime.new_loader(per_item_latency=2.0)
        loader.load_all(["a"], on="second").wait(TIMEOUT)
        assert sim_clock.sleeps == [2.0]
        assert loader is not runtime.loader

    def test_close_stops_pool(self, sim_clock):
        rt = Runtime(clock=sim_clock)
        rt.close()
        with pytest.raises(QueueClosedError):
            rt.loader.load_one("late")
