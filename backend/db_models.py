"""
SQLAlchemy ORM models for the storefront back office.

Tables:
    users                    — customers (read-only lookups for recipient email)
    admins                   — back-office staff (admin fanout)
    orders                   — customer orders with payment + fulfilment status
    order_items              — order line items
    notifications            — persisted notification records (fanout source of truth)
    webhook_subscriptions    — outbound webhook targets per event
    consultation_time_slots  — bookable consultation slots
    consultation_bookings    — consultation bookings held until payment
"""
from sqlalchemy import (
    JSON, Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, Index,
)
from sqlalchemy.orm import relationship

from database import Base
from domain.enums import BookingStatus, BookingTransactionStatus, DiscountType, OrderStatus, TransactionStatus
from utils.clock import utcnow


class User(Base):
    """Customer accounts. Owned by the accounts collaborator."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Admin(Base):
    """Back-office staff accounts."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    admin_id = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)


class Order(Base):
    """
    Customer order.

    order_status only moves forward:
        pending/packaging -> shipped -> delivered -> completed
    or diverts to cancelled while payment is still pending.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    sub_total = Column(Float, nullable=False, default=0.0)
    total_discount = Column(Float, nullable=False, default=0.0)
    grand_total = Column(Float, nullable=False, default=0.0)
    transaction_id = Column(String(100), unique=True, nullable=False)
    transaction_status = Column(String(20), nullable=False, default=TransactionStatus.PENDING.value)
    order_status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    dispute_window_expires_at = Column(DateTime, nullable=True)
    is_disputed = Column(Boolean, nullable=False, default=False)
    has_been_disputed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    items = relationship("OrderItem", back_populates="order", lazy="selectin", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_orders_status_txn_created", "order_status", "transaction_status", "created_at"),
        Index("ix_orders_status_dispute_window", "order_status", "dispute_window_expires_at"),
    )


class OrderItem(Base):
    """One product line on an order."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_pk = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    name = Column(String(200), nullable=False)
    price = Column(Float, nullable=False)
    discounted_price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    total = Column(Float, nullable=False)
    discount_value = Column(Float, nullable=False, default=0.0)
    discount_type = Column(String(20), nullable=False, default=DiscountType.NONE.value)

    order = relationship("Order", back_populates="items")


class Notification(Base):
    """
    A persisted notification.

    user_id NULL means a role-wide broadcast. The only field mutated after
    creation is is_read.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=True, index=True)
    recipient_role = Column(String(10), nullable=False, index=True)  # user | admin | both
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False)  # BOOKING | PAYMENT | SYSTEM | ORDER
    is_read = Column(Boolean, nullable=False, default=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class WebhookSubscription(Base):
    """Outbound webhook target. Managed outside this service."""
    __tablename__ = "webhook_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event = Column(String(100), nullable=False, index=True)
    url = Column(Text, nullable=False)
    secret = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)


class ConsultationTimeSlot(Base):
    """A bookable consultation slot."""
    __tablename__ = "consultation_time_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    time_slot_id = Column(Integer, unique=True, nullable=False, index=True)
    start_time = Column(String(10), nullable=False)
    end_time = Column(String(10), nullable=False)
    label = Column(String(100), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)


class ConsultationBooking(Base):
    """
    A consultation booking. The slot is held while payment is pending and
    released when the hold (payment_expires_at) lapses.
    """
    __tablename__ = "consultation_bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    consultation_plan_id = Column(Integer, nullable=False)
    time_slot_id = Column(Integer, nullable=False)
    date = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    transaction_status = Column(String(20), nullable=False, default=BookingTransactionStatus.PENDING.value)
    transaction_id = Column(String(100), nullable=True)
    payment_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_bookings_status_txn_expiry", "status", "transaction_status", "payment_expires_at"),
    )
