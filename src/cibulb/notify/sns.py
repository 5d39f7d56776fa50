import asyncio
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sanic.log import logger

from cibulb.config import Settings
from cibulb.errors import NotificationDeliveryError
from cibulb.model import AggregateStatus


class SnsNotifier:
    """Publishes the bare aggregate value to an SNS topic."""

    name = "sns"

    def __init__(self, client: Any, topic_arn: str):
        self.client = client
        self.topic_arn = topic_arn

    @classmethod
    def from_settings(
        cls, settings: Settings, client: Optional[Any] = None
    ) -> "SnsNotifier":
        if not settings.SNS_TOPIC_ARN:
            raise ValueError("SNS_TOPIC_ARN is required for the sns notifier")
        if client is None:
            client = boto3.client("sns", region_name=settings.AWS_REGION)
        return cls(client, settings.SNS_TOPIC_ARN)

    async def notify(self, status: AggregateStatus) -> str:
        logger.debug("Publishing %s to %s", status.value, self.topic_arn)
        try:
            response = await asyncio.to_thread(
                self.client.publish,
                TopicArn=self.topic_arn,
                Message=status.value,
            )
        except (BotoCoreError, ClientError) as exc:
            raise NotificationDeliveryError(
                self.name, f"publish to {self.topic_arn} failed: {exc}"
            ) from exc
        logger.debug("SNS message id %s", response.get("MessageId"))
        return ""
