"""
Per-type shaping of the notification metadata bag.

The bag stays an open key/value map (unknown keys are preserved for client
deep-linking), but the keys each notification type relies on are validated
here so webhook consumers can count on them.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from domain.enums import NotificationType
from domain.errors import ValidationError


class _MetadataBase(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class OrderMetadata(_MetadataBase):
    order_id: int = Field(..., alias="orderId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    reason: Optional[str] = None
    order_status: Optional[str] = Field(default=None, alias="orderStatus")
    transaction_status: Optional[str] = Field(default=None, alias="transactionStatus")


class BookingMetadata(_MetadataBase):
    booking_id: int = Field(..., alias="bookingId")
    time_slot_id: Optional[int] = Field(default=None, alias="timeSlotId")
    reason: Optional[str] = None


class PaymentMetadata(_MetadataBase):
    order_id: Optional[int] = Field(default=None, alias="orderId")
    booking_id: Optional[int] = Field(default=None, alias="bookingId")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")


class SystemMetadata(_MetadataBase):
    pass


METADATA_SHAPES: dict[NotificationType, type[_MetadataBase]] = {
    NotificationType.ORDER: OrderMetadata,
    NotificationType.BOOKING: BookingMetadata,
    NotificationType.PAYMENT: PaymentMetadata,
    NotificationType.SYSTEM: SystemMetadata,
}


def shape_metadata(notification_type: str, metadata: dict[str, Any] | None) -> dict[str, Any]:
    """
    Validate `metadata` for `notification_type` and return it in wire form
    (camelCase keys, unset optionals dropped, extra keys kept).

    Raises:
        ValidationError: unknown type or missing/ill-typed required keys
    """
    try:
        kind = NotificationType(notification_type)
    except ValueError:
        raise ValidationError(f"unknown notification type '{notification_type}'", field="type")

    try:
        shaped = METADATA_SHAPES[kind].model_validate(metadata or {})
    except PydanticValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ValidationError(
            f"invalid metadata for {kind.value} notification",
            field="metadata",
            details={"errors": problems},
        )

    return shaped.model_dump(by_alias=True, exclude_none=True)
