"""
Domain enums and the order/booking state machines.
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PACKAGING = "packaging"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingTransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class RecipientRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    BOTH = "both"


class NotificationType(str, Enum):
    BOOKING = "BOOKING"
    PAYMENT = "PAYMENT"
    SYSTEM = "SYSTEM"
    ORDER = "ORDER"


class DiscountType(str, Enum):
    FREE = "free"
    PERCENTAGE = "percentage"
    FLAT = "flat"
    NONE = "none"


# Orders still awaiting payment that the auto-cancel job may divert
CANCELLABLE_ORDER_STATUSES = (OrderStatus.PENDING.value, OrderStatus.PACKAGING.value)

# Forward-only progression; pending and packaging share a rank.
# CANCELLED sits outside the ladder and is terminal.
_ORDER_STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.PACKAGING: 0,
    OrderStatus.SHIPPED: 1,
    OrderStatus.DELIVERED: 2,
    OrderStatus.COMPLETED: 3,
}


def can_advance(current: str, target: str) -> bool:
    """Return True if an order may move from `current` to `target`."""
    current, target = OrderStatus(current), OrderStatus(target)
    if current in (OrderStatus.CANCELLED, OrderStatus.COMPLETED):
        return False
    if target == OrderStatus.CANCELLED:
        return current in (OrderStatus.PENDING, OrderStatus.PACKAGING)
    if current == OrderStatus.PENDING and target == OrderStatus.PACKAGING:
        return True
    return _ORDER_STATUS_RANK[target] > _ORDER_STATUS_RANK[current]


def statuses_that_can_advance_to(target: str) -> list[str]:
    """All order statuses from which `target` is a legal next state."""
    return [s.value for s in OrderStatus if can_advance(s.value, target)]
