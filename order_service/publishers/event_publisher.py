"""
RabbitMQ Event Publisher

Events are best-effort follow-ups to committed order changes: the
notification service turns ``OrderCreated`` into the customer's
confirmation email and the baker's new-order notice. A failed publish is
logged and reported as False, never raised.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pika
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from order_service.config import settings
from order_service.schemas.order import DeliveryMethod, Order, OrderStatus

logger = logging.getLogger(__name__)


def _format_date(value: Optional[datetime]) -> Optional[str]:
    return value.date().isoformat() if value else None


def order_created_payload(order: Order) -> Dict[str, Any]:
    """Details needed for the confirmation email and the baker notice"""
    items = [{"name": i.name, "quantity": i.quantity, "price": i.price} for i in order.items]
    delivery_address = None
    delivery_date = None
    pickup_date = None
    pickup_time = None
    if order.delivery_method == DeliveryMethod.DELIVERY and order.delivery_info:
        info = order.delivery_info
        delivery_address = f"{info.address}, {info.city}, {info.state} {info.zip_code}"
        delivery_date = _format_date(info.delivery_date)
    elif order.delivery_method == DeliveryMethod.PICKUP and order.pickup_info:
        pickup_date = _format_date(order.pickup_info.pickup_date)
        pickup_time = order.pickup_info.pickup_time

    return {
        "order_id": order.id,
        "user_id": order.user_id,
        "customer_name": order.customer_info.name,
        "customer_email": order.customer_info.email,
        "order_total": order.total,
        "items": items,
        "delivery_method": order.delivery_method.value,
        "delivery_address": delivery_address,
        "delivery_date": delivery_date,
        "pickup_date": pickup_date,
        "pickup_time": pickup_time,
        "special_instructions": order.special_instructions,
        "is_custom_order": order.is_custom_order,
        "status": order.status.value,
    }


class EventPublisher:
    """Publisher for sending order events to RabbitMQ"""
    
    def __init__(self):
        self.rabbitmq_url = settings.RABBITMQ_URL
        self.exchange = settings.RABBITMQ_EXCHANGE
        self.enabled = settings.EVENTS_ENABLED
    
    @retry(
        stop=stop_after_attempt(settings.MAX_RETRIES),
        wait=wait_exponential(multiplier=settings.RETRY_DELAY, min=1, max=10),
        retry=retry_if_exception_type(pika.exceptions.AMQPConnectionError),
        reraise=True
    )
    def _connect(self) -> pika.BlockingConnection:
        return pika.BlockingConnection(pika.URLParameters(self.rabbitmq_url))
    
    def _publish(self, event_type: str, routing_key: str, data: Dict[str, Any], mandatory: bool = False) -> bool:
        """
        Publish one event to the orders exchange
        
        Returns:
            True if published successfully, False otherwise
        """
        if not self.enabled:
            logger.debug(f"Event publishing disabled, dropping {event_type}")
            return False
        
        event = {
            "event_type": event_type,
            "event_id": str(uuid.uuid4()),
            "event_version": "1.0",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": settings.SERVICE_NAME,
            "data": data
        }
        
        connection = None
        try:
            connection = self._connect()
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
                routing_key=routing_key,
                body=json.dumps(event, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Persistent message
                    content_type='application/json',
                    correlation_id=event["event_id"]
                ),
                mandatory=mandatory
            )
            logger.info(f"Event published: {event_type} (ID: {event['event_id']})")
            return True
        
        except pika.exceptions.UnroutableError:
            logger.warning(f"{event_type} event could not be routed to any queue")
            return False
        except Exception as e:
            logger.error(f"Error publishing {event_type} event: {e}")
            return False
        finally:
            if connection is not None and connection.is_open:
                connection.close()
    
    def publish_order_created(self, order: Order) -> bool:
        """Publish OrderCreated; drives confirmation and baker notifications"""
        return self._publish(
            "OrderCreated",
            settings.RABBITMQ_ROUTING_KEY,
            order_created_payload(order),
            mandatory=True
        )
    
    def publish_order_status_changed(self, order: Order, previous_status: OrderStatus) -> bool:
        """Publish OrderStatusChanged for status updates and cancellations"""
        latest = order.status_history[-1] if order.status_history else None
        return self._publish(
            "OrderStatusChanged",
            settings.RABBITMQ_STATUS_ROUTING_KEY,
            {
                "order_id": order.id,
                "user_id": order.user_id,
                "customer_email": order.customer_info.email,
                "old_status": previous_status.value,
                "new_status": order.status.value,
                "note": latest.note if latest else None,
                "updated_by": latest.updated_by if latest else None,
                "updated_at": latest.timestamp.isoformat() if latest else None,
            }
        )
    
    def publish_payment_recorded(self, order: Order, payment_id: str, duplicate: bool = False) -> bool:
        """Publish PaymentRecorded with the order's new balance"""
        return self._publish(
            "PaymentRecorded",
            settings.RABBITMQ_PAYMENT_ROUTING_KEY,
            {
                "order_id": order.id,
                "payment_id": payment_id,
                "duplicate_confirmation": duplicate,
                "amount_paid": order.amount_paid,
                "balance_due": order.balance_due,
                "payment_status": order.payment_status.value,
            }
        )
