"""
RabbitMQ Event Publisher

Events are published only after the originating transaction has committed.
A publishing failure is logged and reported as False; it never changes the
committed outcome.
"""
import json
import uuid
from typing import Dict, Optional

import pika
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from order_fulfillment.config import settings
from order_fulfillment.database import utcnow

logger = structlog.get_logger(__name__)

ORDER_PLACED = "OrderPlaced"
ORDER_STATUS_CHANGED = "OrderStatusChanged"

ROUTING_KEYS = {
    ORDER_PLACED: "order.placed",
    ORDER_STATUS_CHANGED: "order.status.changed",
}

# New orders must reach a consumer; status updates may go unrouted
MANDATORY_EVENTS = {ORDER_PLACED}


class EventPublisher:
    """Publisher for sending order events to RabbitMQ"""

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = settings.EVENTS_ENABLED if enabled is None else enabled
        self.rabbitmq_url = settings.RABBITMQ_URL
        self.exchange = settings.RABBITMQ_EXCHANGE

    def publish_order_placed(self, order_data: Dict) -> bool:
        """
        Publish OrderPlaced event

        Args:
            order_data: Committed order summary

        Returns:
            True if published, False if disabled or publishing failed
        """
        return self._safe_publish(ORDER_PLACED, order_data)

    def publish_order_status_changed(self, order_data: Dict) -> bool:
        """
        Publish OrderStatusChanged event

        Args:
            order_data: Order ID, old/new status and transition

        Returns:
            True if published, False if disabled or publishing failed
        """
        return self._safe_publish(ORDER_STATUS_CHANGED, order_data)

    def build_event(self, event_type: str, data: Dict) -> Dict:
        return {
            "event_type": event_type,
            "event_id": str(uuid.uuid4()),
            "event_version": "1.0",
            "timestamp": utcnow().isoformat(),
            "source": settings.SERVICE_NAME,
            "data": data
        }

    def _safe_publish(self, event_type: str, data: Dict) -> bool:
        if not self.enabled:
            return False

        event = self.build_event(event_type, data)
        try:
            self._publish(event)
        except pika.exceptions.UnroutableError:
            logger.warning("Event could not be routed to any queue", event_type=event_type, event_id=event["event_id"])
            return False
        except pika.exceptions.AMQPError:
            logger.exception("Error publishing event", event_type=event_type, event_id=event["event_id"])
            return False
        except Exception:
            logger.exception("Unexpected error publishing event", event_type=event_type, event_id=event["event_id"])
            return False

        logger.info("Event published", event_type=event_type, event_id=event["event_id"])
        return True

    @retry(
        stop=stop_after_attempt(settings.MAX_RETRIES),
        wait=wait_exponential(multiplier=settings.RETRY_DELAY, min=1, max=10),
        retry=retry_if_exception_type(pika.exceptions.AMQPConnectionError),
        reraise=True
    )
    def _publish(self, event: Dict) -> None:
        connection = pika.BlockingConnection(pika.URLParameters(self.rabbitmq_url))
        try:
            channel = connection.channel()
            channel.exchange_declare(
                exchange=self.exchange,
                exchange_type='topic',
                durable=True
            )

            # Enable publisher confirms
            channel.confirm_delivery()

            channel.basic_publish(
                exchange=self.exchange,
                routing_key=ROUTING_KEYS[event["event_type"]],
                body=json.dumps(event, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Persistent message
                    content_type='application/json',
                    correlation_id=event["event_id"]
                ),
                mandatory=event["event_type"] in MANDATORY_EVENTS
            )
        finally:
            connection.close()
