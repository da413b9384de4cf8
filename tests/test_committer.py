import unittest

from forecast_bridge.committer import CompletedForecast, ResponseCommitter, make_result_channel
from forecast_bridge.errors import QueueError
from forecast_bridge.models import ForecastResult, ForecastStatus


class RecordingQueue:
    def __init__(self, name, events, fail_send=False, fail_delete=False):
        self.name = name
        self.events = events
        self.fail_send = fail_send
        self.fail_delete = fail_delete

    def send(self, body):
        if self.fail_send:
            raise QueueError("send failed")
        self.events.append((self.name, "send", body))
        return "m-out"

    def delete(self, receipt_handle):
        if self.fail_delete:
            raise QueueError("delete failed")
        self.events.append((self.name, "delete", receipt_handle))


def _item(request_id="r1", handle="h1"):
    result = ForecastResult(request_id=request_id, latitude="10", longitude="20",
                            forecasts={"hourly": "Rain"}, status=ForecastStatus.READY)
    return CompletedForecast(result=result, receipt_handle=handle, message_id=request_id)


class TestResponseCommitter(unittest.TestCase):
    def _committer(self, **response_kwargs):
        self.events = []
        responses = RecordingQueue("responses", self.events, **response_kwargs)
        requests = RecordingQueue("requests", self.events)
        return ResponseCommitter(make_result_channel(10), responses, requests), responses, requests

    def test_publish_then_acknowledge(self):
        committer, _, _ = self._committer()
        self.assertTrue(committer.commit(_item()))
        self.assertEqual([(q, op) for q, op, _ in self.events], [("responses", "send"), ("requests", "delete")])
        self.assertEqual(self.events[1][2], "h1")

    def test_publish_failure_leaves_request_unacknowledged(self):
        committer, _, _ = self._committer(fail_send=True)
        self.assertFalse(committer.commit(_item()))
        self.assertEqual(self.events, [])

    def test_acknowledge_failure_is_logged_and_dropped(self):
        committer, _, requests = self._committer()
        requests.fail_delete = True
        self.assertFalse(committer.commit(_item()))
        self.assertEqual([(q, op) for q, op, _ in self.events], [("responses", "send")])

    def test_drains_channel_in_arrival_order(self):
        committer, _, _ = self._committer()
        for i in (3, 1, 2):
            committer.channel.put(_item(request_id=f"r{i}", handle=f"h{i}"))
        committer.start()
        committer.stop(timeout=2)
        deletes = [payload for _, op, payload in self.events if op == "delete"]
        self.assertEqual(deletes, ["h3", "h1", "h2"])

    def test_stop_without_start_is_a_no_op(self):
        committer, _, _ = self._committer()
        committer.stop(timeout=0.1)
        self.assertTrue(committer.channel.empty())


if __name__ == "__main__":
    unittest.main()
