"""
Domain constants used across services/routers.
"""

# Webhook event emitted for every persisted notification
NOTIFICATION_CREATED_EVENT = "notification.created"

# Real-time event name pushed to subscribed sessions
REALTIME_NOTIFICATION_EVENT = "notification"

# Room naming: "<role>:<userId>" for a session, "<role>:*" for a role-wide broadcast
ROOM_SEPARATOR = ":"
BROADCAST_ROOM_SUFFIX = "*"

# Outbound webhook headers
WEBHOOK_EVENT_HEADER = "X-Webhook-Event"
WEBHOOK_SIGNATURE_HEADER = "X-Webhook-Signature"

# Auto-cancel reason surfaced to the customer
PAYMENT_TIMEOUT_REASON = "Payment not completed within 2 hours"
BOOKING_PAYMENT_TIMEOUT_REASON = "Payment not completed before the booking hold expired"
