"""Amazon SQS queue backend built on boto3."""

from typing import List

from botocore.exceptions import BotoCoreError, ClientError

from forecast_bridge.errors import QueueError
from forecast_bridge.models import QueueMessage
from forecast_bridge.queues.base import MessageQueue
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="queues/sqs_queue")


class SqsQueue(MessageQueue):
    """One SQS queue URL bound to a boto3 SQS client."""

    def __init__(self, client, queue_url: str, *, name: str = "queue", delay_seconds: int = 0) -> None:
        if not queue_url:
            raise ValueError(f"queue url for '{name}' must be set for the SQS backend")
        logger.debug("Initializing SqsQueue %s -> %s", name, queue_url)
        self.client = client
        self.queue_url = queue_url
        self.name = name
        self.delay_seconds = delay_seconds

    def send(self, body: str) -> str:
        try:
            resp = self.client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=body,
                DelaySeconds=self.delay_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"send to {self.name} failed: {exc}") from exc
        return resp["MessageId"]

    def receive(self, *, max_messages: int = 1, wait_seconds: int = 20,
                visibility_timeout: int = 20) -> List[QueueMessage]:
        try:
            resp = self.client.receive_message(
                QueueUrl=self.queue_url,
                AttributeNames=["All"],
                MaxNumberOfMessages=max_messages,
                VisibilityTimeout=visibility_timeout,
                WaitTimeSeconds=wait_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"receive from {self.name} failed: {exc}") from exc
        return [
            QueueMessage(
                body=m.get("Body", ""),
                receipt_handle=m["ReceiptHandle"],
                message_id=m["MessageId"],
            )
            for m in resp.get("Messages", [])
        ]

    def delete(self, receipt_handle: str) -> None:
        try:
            self.client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"delete from {self.name} failed: {exc}") from exc

    def ping(self) -> bool:
        try:
            self.client.get_queue_attributes(
                QueueUrl=self.queue_url,
                AttributeNames=["ApproximateNumberOfMessages"],
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"{self.name} unreachable: {exc}") from exc
        return True
