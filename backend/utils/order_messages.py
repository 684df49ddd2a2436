"""
Customer-facing copy for order status changes.
"""
from domain.enums import OrderStatus

_STATUS_MESSAGES = {
    OrderStatus.PENDING.value: "Order #{order_id} has been placed and is awaiting payment.",
    OrderStatus.PACKAGING.value: "Order #{order_id} is being packed.",
    OrderStatus.SHIPPED.value: "Order #{order_id} has been shipped.",
    OrderStatus.DELIVERED.value: "Order #{order_id} has been delivered.",
    OrderStatus.COMPLETED.value: "Order #{order_id} has been completed successfully.",
    OrderStatus.CANCELLED.value: "Order #{order_id} has been cancelled.",
}


def get_order_status_message(order_id: int, status: str) -> str:
    template = _STATUS_MESSAGES.get(status)
    if template is None:
        return f"Order #{order_id} status updated to {status}."
    return template.format(order_id=order_id)
