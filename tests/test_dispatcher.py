"""
Tests for the request dispatcher
"""

import random
import threading

import pytest

from config import TransportConfig
from core.cachebuster import CacheBuster
from core.connection import Transport, TransportError, TransportResult, ConnectionStats
from core.parser import HTTPResponse
from scanner.builder import RequestBuilder
from scanner.dispatcher import Dispatcher
from scanner.results import ProbeStage


class RecordingTransport:
    """Fake transport logging when each request starts and ends"""

    def __init__(self, fail_on=()):
        self.events = []
        self.lock = threading.Lock()
        self.fail_on = fail_on

    def send(self, request, proxy="", delay=0):
        with self.lock:
            self.events.append(("start", request.variant))
        try:
            if request.variant in self.fail_on:
                raise TransportError("boom")
            response = HTTPResponse(status_code=200, content_length=len(request.variant))
            return TransportResult(response=response, stats=ConnectionStats())
        finally:
            with self.lock:
                self.events.append(("end", request.variant))


class BarrierTransport:
    """Fake transport that only answers once every request is in flight"""

    def __init__(self, parties):
        self.barrier = threading.Barrier(parties, timeout=5)

    def send(self, request, proxy="", delay=0):
        self.barrier.wait()
        return TransportResult(response=HTTPResponse(status_code=200), stats=ConnectionStats())


@pytest.fixture
def builder():
    return RequestBuilder(CacheBuster(random.Random(5)))


class TestSequentialMode:
    """Test one-at-a-time dispatch"""

    def test_input_order_and_no_overlap(self, builder):
        transport = RecordingTransport()
        dispatcher = Dispatcher(builder, transport, sequential=True)
        variants = ["X-A: 1", "X-B: 2", "X-C: 3"]

        results = list(dispatcher.run("http://example.com/", variants))

        assert [r.header for r in results] == variants
        assert transport.events == [
            ("start", "X-A: 1"), ("end", "X-A: 1"),
            ("start", "X-B: 2"), ("end", "X-B: 2"),
            ("start", "X-C: 3"), ("end", "X-C: 3"),
        ]

    def test_next_task_waits_for_result(self, builder):
        """Task i+1 is not started before task i's result is consumed"""
        transport = RecordingTransport()
        dispatcher = Dispatcher(builder, transport, sequential=True)
        stream = dispatcher.run("http://example.com/", ["X-A: 1", "X-B: 2"])

        first = next(stream)
        assert first.header == "X-A: 1"
        assert ("start", "X-B: 2") not in transport.events

        rest = list(stream)
        assert [r.header for r in rest] == ["X-B: 2"]

    def test_stream_terminates(self, builder):
        dispatcher = Dispatcher(builder, RecordingTransport(), sequential=True)

        assert len(list(dispatcher.run("http://example.com/", ["X-A: 1"] * 4))) == 4


class TestParallelMode:
    """Test concurrent dispatch"""

    def test_all_requests_in_flight_together(self, builder):
        dispatcher = Dispatcher(builder, BarrierTransport(5))

        results = list(dispatcher.run("http://example.com/", [f"X-N: {i}" for i in range(5)]))

        assert len(results) == 5
        assert all(r.ok for r in results)

    def test_one_result_per_variant(self, builder):
        variants = [f"X-N: {i}" for i in range(20)]
        dispatcher = Dispatcher(builder, RecordingTransport(), concurrency=4)

        results = list(dispatcher.run("http://example.com/", variants))

        assert sorted(r.header for r in results) == sorted(variants)

    def test_duplicates_not_removed(self, builder):
        dispatcher = Dispatcher(builder, RecordingTransport())

        results = list(dispatcher.run("http://example.com/", ["X-A: 1", "X-A: 1"]))

        assert len(results) == 2
        assert results[0].url != results[1].url

    def test_empty_input(self, builder):
        dispatcher = Dispatcher(builder, RecordingTransport())

        assert list(dispatcher.run("http://example.com/", [])) == []


class TestFailures:
    """Test tagged failure records"""

    @pytest.mark.parametrize("sequential", [True, False])
    def test_transport_failure_tagged(self, builder, sequential):
        transport = RecordingTransport(fail_on={"X-Bad: 1"})
        dispatcher = Dispatcher(builder, transport, sequential=sequential)

        results = list(dispatcher.run("http://example.com/", ["X-Good: 1", "X-Bad: 1"]))
        by_header = {r.header: r for r in results}

        assert len(results) == 2
        assert by_header["X-Good: 1"].ok
        bad = by_header["X-Bad: 1"]
        assert bad.stage is ProbeStage.TRANSPORT
        assert bad.error == "boom"
        assert "cachebuster=" in bad.url

    def test_build_failure_tagged(self, builder):
        dispatcher = Dispatcher(builder, RecordingTransport())

        results = list(dispatcher.run("not a url", ["X-A: 1"]))

        assert results[0].stage is ProbeStage.BUILD
        assert results[0].url == ""
        assert not results[0].ok

    def test_proxy_failure_tagged(self, builder):
        dispatcher = Dispatcher(builder, Transport(TransportConfig(timeout=2)), proxy="bad proxy")

        results = list(dispatcher.run("http://127.0.0.1/", ["X-A: 1", "X-B: 2"]))

        assert [r.stage for r in results] == [ProbeStage.PROXY, ProbeStage.PROXY]


class TestAgainstServer:
    """End-to-end dispatch against the local server"""

    @pytest.mark.parametrize("sequential", [True, False])
    def test_every_variant_answered(self, http_server, builder, sequential):
        dispatcher = Dispatcher(builder, Transport(TransportConfig(timeout=5)), sequential=sequential)
        variants = [f"X-Test: {i}" for i in range(6)]

        results = list(dispatcher.run(http_server.base_url + "/", variants))

        assert len(results) == 6
        assert all(r.ok and r.status_code == 200 for r in results)
        assert all(r.content_length == len(b"hello world") for r in results)
        assert len(http_server.requests) == 6

    def test_unreachable_proxy_yields_failures(self, builder, closed_port):
        dispatcher = Dispatcher(
            builder, Transport(TransportConfig(timeout=2)), proxy=f"127.0.0.1:{closed_port}"
        )

        results = list(dispatcher.run("http://target.invalid/", ["X-A: 1", "X-B: 2"]))

        assert len(results) == 2
        assert all(r.stage is ProbeStage.TRANSPORT for r in results)

    def test_sequential_delay_precedes_each_send(self, http_server, builder):
        """Each delay starts only after the previous request was answered"""
        events = []
        transport = Transport(
            TransportConfig(timeout=5),
            sleep=lambda seconds: events.append(("sleep", seconds, len(http_server.requests)))
        )
        dispatcher = Dispatcher(builder, transport, delay=1, sequential=True)
        stream = dispatcher.run(http_server.base_url + "/", ["X-A: 1", "X-B: 2", "X-C: 3"])

        for result in stream:
            assert result.ok
            events.append(("result", result.header, len(http_server.requests)))

        assert events == [
            ("sleep", 1, 0), ("result", "X-A: 1", 1),
            ("sleep", 1, 1), ("result", "X-B: 2", 2),
            ("sleep", 1, 2), ("result", "X-C: 3", 3),
        ]


class TestInvalidHosts:
    """Hosts that only fail when encoded for the resolver"""

    @pytest.mark.parametrize("sequential", [True, False])
    def test_overlong_target_label(self, builder, sequential):
        dispatcher = Dispatcher(builder, Transport(TransportConfig(timeout=2)), sequential=sequential)

        results = list(dispatcher.run("http://" + "a" * 70 + ".example/", ["X-A: 1"]))

        assert len(results) == 1
        assert results[0].stage is ProbeStage.TRANSPORT
        assert "Invalid host" in results[0].error

    def test_empty_proxy_label(self, builder):
        dispatcher = Dispatcher(builder, Transport(TransportConfig(timeout=2)), proxy="a..b:8080")

        results = list(dispatcher.run("http://127.0.0.1/", ["X-A: 1", "X-B: 2"]))

        assert sorted(r.header for r in results) == ["X-A: 1", "X-B: 2"]
        assert all(r.stage is ProbeStage.TRANSPORT for r in results)
