"""
Notification addressing.

A notification is either Targeted at one (role, user) pair or Broadcast to a
whole role. The real-time layer resolves an address into room names:

    Targeted("user", "u-1")  -> ["user:u-1"]
    Broadcast("admin")       -> ["admin:*"]
    Broadcast("both")        -> ["user:*", "admin:*"]

Every session that joins as (role, userId) is subscribed to both its own room
and its role's broadcast room, so broadcasts always have an audience.
"""
from dataclasses import dataclass
from typing import Union

from domain.constants import BROADCAST_ROOM_SUFFIX, ROOM_SEPARATOR
from domain.enums import RecipientRole
from domain.errors import ValidationError


@dataclass(frozen=True)
class Targeted:
    role: RecipientRole
    user_id: str


@dataclass(frozen=True)
class Broadcast:
    role: RecipientRole


Address = Union[Targeted, Broadcast]


def room_for(role: str, user_id: str) -> str:
    return f"{role}{ROOM_SEPARATOR}{user_id}"


def broadcast_room_for(role: str) -> str:
    return f"{role}{ROOM_SEPARATOR}{BROADCAST_ROOM_SUFFIX}"


def resolve_address(recipient_role: str, user_id: str | None) -> Address:
    """
    Build an address from the flat (recipientRole, userId) pair callers send.

    Raises:
        ValidationError: unknown role, or a targeted notification for "both"
    """
    try:
        role = RecipientRole(recipient_role)
    except ValueError:
        raise ValidationError(f"unknown recipient role '{recipient_role}'", field="recipientRole")

    if user_id is None or user_id == "":
        return Broadcast(role=role)

    if role == RecipientRole.BOTH:
        raise ValidationError(
            "a targeted notification must address either 'user' or 'admin'",
            field="recipientRole",
        )
    return Targeted(role=role, user_id=str(user_id))


def rooms_for(address: Address) -> list[str]:
    """Resolve an address into the real-time rooms that should receive it."""
    if isinstance(address, Targeted):
        return [room_for(address.role.value, address.user_id)]

    if address.role == RecipientRole.BOTH:
        return [
            broadcast_room_for(RecipientRole.USER.value),
            broadcast_room_for(RecipientRole.ADMIN.value),
        ]
    return [broadcast_room_for(address.role.value)]
