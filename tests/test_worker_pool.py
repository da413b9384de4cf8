import json
import threading
import unittest
from concurrent.futures import wait

from forecast_bridge.config import Settings
from forecast_bridge.errors import ProviderError, QueueError
from forecast_bridge.models import ForecastRequest, ForecastResult, QueueMessage
from forecast_bridge.queues import InMemoryQueue
from forecast_bridge.worker import WorkerPool


class FakeProvider:
    def __init__(self, summaries=None, fail=False):
        self.summaries = summaries if summaries is not None else {"hourly": "Rain later", "daily": "Mild"}
        self.fail = fail
        self.calls = []
        self._lock = threading.Lock()

    def lookup(self, latitude, longitude, categories):
        with self._lock:
            self.calls.append((latitude, longitude, frozenset(categories)))
        if self.fail:
            raise ProviderError("provider down")
        return {c: s for c, s in self.summaries.items() if c in categories}


def _settings(**overrides):
    values = dict(receive_wait_seconds=0, visibility_timeout_seconds=30, worker_concurrency=4,
                  result_channel_size=10, worker_process_wait_ms=0)
    values.update(overrides)
    return Settings(**values)


class TestWorkerPool(unittest.TestCase):
    def setUp(self):
        self.requests = InMemoryQueue("request-queue")
        self.responses = InMemoryQueue("response-queue")
        self.provider = FakeProvider()
        self.pool = WorkerPool(_settings(), self.requests, self.responses, self.provider)
        self.addCleanup(self.pool.stop)

    def _send(self, **body):
        return self.requests.send(ForecastRequest(**body).to_body())

    def test_process_builds_result_with_message_id(self):
        message_id = self._send(lat="10", lon="20", summaries=["hourly"])
        [msg] = self.requests.receive(wait_seconds=0)
        result = self.pool.process(msg)
        self.assertEqual(result.request_id, message_id)
        self.assertEqual(result.forecasts, {"hourly": "Rain later"})
        self.assertEqual(self.provider.calls, [("10", "20", frozenset({"hourly"}))])

    def test_process_keeps_originating_request_id(self):
        self._send(lat="10", lon="20", summaries=["daily"], requestID="caller-id")
        [msg] = self.requests.receive(wait_seconds=0)
        self.assertEqual(self.pool.process(msg).request_id, "caller-id")

    def test_malformed_body_is_dropped_without_ack(self):
        self.requests.send("{not json")
        [msg] = self.requests.receive(wait_seconds=0)
        self.pool.handle(msg)
        self.assertTrue(self.pool.channel.empty())
        self.assertEqual(self.provider.calls, [])
        self.assertEqual(len(self.requests), 1)

    def test_provider_failure_is_dropped_without_ack(self):
        pool = WorkerPool(_settings(), self.requests, self.responses, FakeProvider(fail=True))
        self.addCleanup(pool.stop)
        self._send(lat="10", lon="20", summaries=["hourly"])
        [msg] = self.requests.receive(wait_seconds=0)
        pool.handle(msg)
        self.assertTrue(pool.channel.empty())
        self.assertEqual(len(self.requests), 1)

    def test_handle_puts_completed_forecast_on_channel(self):
        self._send(lat="10", lon="20", summaries=["hourly", "daily"])
        [msg] = self.requests.receive(wait_seconds=0)
        self.pool.handle(msg)
        item = self.pool.channel.get_nowait()
        self.assertEqual(item.receipt_handle, msg.receipt_handle)
        self.assertEqual(item.result.forecasts, {"hourly": "Rain later", "daily": "Mild"})

    def test_poll_once_fans_out_and_committer_acknowledges(self):
        pool = WorkerPool(_settings(max_messages=5), self.requests, self.responses, self.provider)
        for lat in ("1", "2", "3"):
            self._send(lat=lat, lon="20", summaries=["hourly"])

        pool.committer.start()
        futures = pool.poll_once()
        self.assertEqual(len(futures), 3)
        wait(futures)
        pool.stop()

        self.assertEqual(len(self.requests), 0)
        bodies = [json.loads(m.body) for m in self.responses.receive(max_messages=10, wait_seconds=0)]
        self.assertEqual(sorted(b["lat"] for b in bodies), ["1", "2", "3"])

    def test_stop_drains_results_already_on_channel(self):
        message_id = self._send(lat="10", lon="20", summaries=["hourly"])
        [msg] = self.requests.receive(wait_seconds=0)
        self.pool.handle(msg)  # committer not running yet; result waits on the channel

        self.pool.committer.start()
        self.pool.stop()

        [published] = self.responses.receive(wait_seconds=0)
        self.assertEqual(ForecastResult.from_body(published.body).request_id, message_id)
        self.assertEqual(len(self.requests), 0)

    def test_full_channel_blocks_producers(self):
        pool = WorkerPool(_settings(result_channel_size=1), self.requests, self.responses, self.provider)
        self.addCleanup(pool.stop)
        for lat in ("1", "2"):
            self._send(lat=lat, lon="20", summaries=["hourly"])
        first, second = self.requests.receive(max_messages=2, wait_seconds=0)

        pool.handle(first)
        blocked = threading.Thread(target=pool.handle, args=(second,), daemon=True)
        blocked.start()
        blocked.join(0.1)
        self.assertTrue(blocked.is_alive())

        pool.channel.get_nowait()
        blocked.join(1)
        self.assertFalse(blocked.is_alive())
        self.assertEqual(pool.channel.qsize(), 1)

    def test_concurrency_cap_limits_in_flight_handlers(self):
        gate = threading.Event()
        active = []
        peak = []
        lock = threading.Lock()

        class SlowProvider(FakeProvider):
            def lookup(self, latitude, longitude, categories):
                with lock:
                    active.append(1)
                    peak.append(len(active))
                gate.wait(2)
                with lock:
                    active.pop()
                return {"hourly": "x"}

        pool = WorkerPool(_settings(worker_concurrency=2, max_messages=4), self.requests, self.responses,
                          SlowProvider())
        for lat in ("1", "2", "3", "4"):
            self._send(lat=lat, lon="20", summaries=["hourly"])
        pool.committer.start()

        poller = threading.Thread(target=pool.poll_once, daemon=True)
        poller.start()
        poller.join(0.2)
        # two handlers are busy; the loop waits for a free slot
        self.assertTrue(poller.is_alive())
        gate.set()
        poller.join(2)
        pool.stop()
        self.assertLessEqual(max(peak), 2)

    def test_start_and_stop_run_the_receive_loop(self):
        pool = WorkerPool(_settings(receive_wait_seconds=1), self.requests, self.responses, self.provider)
        self._send(lat="10", lon="20", summaries=["hourly"])
        pool.start()
        [published] = self.responses.receive(wait_seconds=2)
        pool.stop()
        self.assertEqual(json.loads(published.body)["forecasts"], {"hourly": "Rain later"})

    def test_receive_errors_do_not_stop_the_loop(self):
        class ThrottledQueue(InMemoryQueue):
            failures = 0

            def receive(self, **kwargs):
                if self.failures < 2:
                    self.failures += 1
                    raise QueueError("throttled")
                return super().receive(**kwargs)

        requests = ThrottledQueue("request-queue")
        pool = WorkerPool(_settings(receive_wait_seconds=1), requests, self.responses, self.provider)
        pool.error_backoff_seconds = 0.01
        requests.send(ForecastRequest(lat="10", lon="20", summaries=["hourly"]).to_body())
        pool.start()
        published = self.responses.receive(wait_seconds=2)
        pool.stop()
        self.assertEqual(requests.failures, 2)
        self.assertEqual(len(published), 1)

    def test_handle_tolerates_unexpected_message_shape(self):
        msg = QueueMessage(body=json.dumps({"lat": "1", "lon": "2", "summaries": "hourly"}),
                           receipt_handle="h", message_id="m")
        self.assertEqual(self.pool.process(msg).forecasts, {"hourly": "Rain later"})


if __name__ == "__main__":
    unittest.main()
