"""
Tests for the notification fanout service.

Covers: persistence-before-delivery, per-channel failure isolation,
addressing/metadata validation, payload shapes, and the read side.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from db_models import Notification
from domain.errors import NotFoundError, NotificationPersistenceError, ValidationError
from services import notification_service
from services.realtime_service import manager


def fake_socket():
    ws = MagicMock()
    ws.send_json = AsyncMock()
    return ws


@pytest.fixture
def channel_mocks():
    """Patch the three outbound channels that leave the process."""
    with patch("services.email_service.send_notification_email", new_callable=AsyncMock) as email, \
         patch("services.push_service.send_push_notification", new_callable=AsyncMock) as push, \
         patch("services.webhook_service.dispatch", new_callable=AsyncMock) as webhook:
        email.return_value = True
        push.return_value = True
        webhook.return_value = []
        yield {"email": email, "push": push, "webhook": webhook}


async def _count(db) -> int:
    return (await db.execute(select(func.count()).select_from(Notification))).scalar_one()


@pytest.mark.unit
class TestCreateNotification:

    async def test_persists_then_attempts_every_channel(self, db_session, channel_mocks):
        ws = fake_socket()
        manager.join(ws, "user", "u-100")

        notification = await notification_service.create_notification(
            db_session,
            recipient_role="user",
            user_id="u-100",
            title="Order Cancelled",
            message="Order #1001 has been cancelled.",
            type="ORDER",
            metadata={"orderId": 1001},
            email="customer@example.com",
        )

        assert notification.id is not None
        assert notification.is_read is False
        assert notification.meta == {"orderId": 1001}
        assert await _count(db_session) == 1

        ws.send_json.assert_awaited_once()
        sent = ws.send_json.await_args.args[0]
        assert sent["event"] == "notification"
        assert sent["data"]["id"] == notification.id
        assert sent["data"]["userId"] == "u-100"
        assert sent["data"]["recipientRole"] == "user"

        channel_mocks["email"].assert_awaited_once_with(
            "customer@example.com", "Order Cancelled", "Order #1001 has been cancelled."
        )
        channel_mocks["push"].assert_awaited_once()
        channel_mocks["webhook"].assert_awaited_once()

    async def test_webhook_payload_is_flat_record(self, db_session, channel_mocks):
        notification = await notification_service.create_notification(
            db_session,
            recipient_role="admin",
            user_id="a-1",
            title="Order Auto-Cancelled",
            message="Order #7 was automatically cancelled (payment timeout).",
            type="ORDER",
            metadata={"orderId": 7, "userId": "u-100"},
        )

        _, event, payload = channel_mocks["webhook"].await_args.args
        assert event == "notification.created"
        assert payload == {
            "notificationId": notification.id,
            "userId": "a-1",
            "recipientRole": "admin",
            "title": "Order Auto-Cancelled",
            "message": "Order #7 was automatically cancelled (payment timeout).",
            "type": "ORDER",
            "metadata": {"orderId": 7, "userId": "u-100"},
            "createdAt": notification.created_at.isoformat(),
        }

    async def test_email_skipped_without_address(self, db_session, channel_mocks):
        await notification_service.create_notification(
            db_session,
            recipient_role="user",
            user_id="u-100",
            title="Hello",
            message="Welcome back",
            type="SYSTEM",
        )
        channel_mocks["email"].assert_not_awaited()
        channel_mocks["push"].assert_awaited_once()
        channel_mocks["webhook"].assert_awaited_once()

    async def test_email_failure_does_not_block_other_channels(self, db_session, channel_mocks, caplog):
        channel_mocks["email"].side_effect = RuntimeError("smtp down")
        ws = fake_socket()
        manager.join(ws, "user", "u-100")

        notification = await notification_service.create_notification(
            db_session,
            recipient_role="user",
            user_id="u-100",
            title="Payment Reminder",
            message="Please pay",
            type="PAYMENT",
            metadata={"orderId": 5},
            email="customer@example.com",
        )

        assert notification.id is not None
        ws.send_json.assert_awaited_once()
        channel_mocks["push"].assert_awaited_once()
        channel_mocks["webhook"].assert_awaited_once()
        assert "email channel failed" in caplog.text

    async def test_every_channel_failing_still_returns_record(self, db_session, channel_mocks):
        channel_mocks["email"].return_value = False
        channel_mocks["push"].side_effect = RuntimeError("push down")
        channel_mocks["webhook"].side_effect = RuntimeError("webhooks down")

        notification = await notification_service.create_notification(
            db_session,
            recipient_role="user",
            user_id="u-100",
            title="t",
            message="m",
            type="SYSTEM",
            email="customer@example.com",
        )
        assert notification.id is not None
        assert await _count(db_session) == 1

    async def test_reload_error_after_commit_is_not_a_persistence_failure(self, db_session, channel_mocks):
        failing_refresh = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection reset")))

        with patch.object(db_session, "refresh", failing_refresh):
            with pytest.raises(OperationalError):
                await notification_service.create_notification(
                    db_session,
                    recipient_role="user",
                    user_id="u-100",
                    title="t",
                    message="m",
                    type="SYSTEM",
                )

        # the record was committed before the reload failed
        assert await _count(db_session) == 1

    async def test_persistence_failure_attempts_no_channel(self, db_session, channel_mocks):
        ws = fake_socket()
        manager.join(ws, "user", "u-100")
        failing_commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk full")))

        with patch.object(db_session, "commit", failing_commit):
            with pytest.raises(NotificationPersistenceError):
                await notification_service.create_notification(
                    db_session,
                    recipient_role="user",
                    user_id="u-100",
                    title="t",
                    message="m",
                    type="SYSTEM",
                    email="customer@example.com",
                )

        ws.send_json.assert_not_awaited()
        channel_mocks["email"].assert_not_awaited()
        channel_mocks["push"].assert_not_awaited()
        channel_mocks["webhook"].assert_not_awaited()
        assert await _count(db_session) == 0

    async def test_targeted_both_is_rejected_before_persisting(self, db_session, channel_mocks):
        with pytest.raises(ValidationError):
            await notification_service.create_notification(
                db_session,
                recipient_role="both",
                user_id="u-100",
                title="t",
                message="m",
                type="SYSTEM",
            )
        assert await _count(db_session) == 0
        channel_mocks["webhook"].assert_not_awaited()

    async def test_order_notification_requires_order_id(self, db_session, channel_mocks):
        with pytest.raises(ValidationError):
            await notification_service.create_notification(
                db_session,
                recipient_role="user",
                user_id="u-100",
                title="t",
                message="m",
                type="ORDER",
                metadata={"reason": "no order id"},
            )
        assert await _count(db_session) == 0

    async def test_broadcast_both_reaches_user_and_admin_sessions(self, db_session, channel_mocks):
        user_ws, admin_ws = fake_socket(), fake_socket()
        manager.join(user_ws, "user", "u-100")
        manager.join(admin_ws, "admin", "a-1")

        notification = await notification_service.create_notification(
            db_session,
            recipient_role="both",
            title="Maintenance",
            message="Store offline at midnight",
            type="SYSTEM",
        )

        assert notification.user_id is None
        user_ws.send_json.assert_awaited_once()
        admin_ws.send_json.assert_awaited_once()

    async def test_targeted_notification_not_seen_by_other_user(self, db_session, channel_mocks):
        other = fake_socket()
        manager.join(other, "user", "u-200")

        await notification_service.create_notification(
            db_session,
            recipient_role="user",
            user_id="u-100",
            title="t",
            message="m",
            type="SYSTEM",
        )
        other.send_json.assert_not_awaited()


@pytest.mark.integration
class TestReadSide:

    async def _seed(self, db):
        with patch("services.webhook_service.dispatch", new_callable=AsyncMock):
            for i in range(3):
                await notification_service.create_notification(
                    db, recipient_role="user", user_id="u-100", title=f"mine {i}", message="m", type="SYSTEM",
                )
            await notification_service.create_notification(
                db, recipient_role="user", user_id="u-200", title="theirs", message="m", type="SYSTEM",
            )
            await notification_service.create_notification(
                db, recipient_role="both", title="everyone", message="m", type="SYSTEM",
            )
            await notification_service.create_notification(
                db, recipient_role="admin", user_id="a-1", title="ops", message="m", type="SYSTEM",
            )

    async def test_user_list_includes_own_and_global_broadcasts(self, db_session):
        await self._seed(db_session)
        items, total = await notification_service.get_user_notifications(db_session, "u-100")
        titles = [n.title for n in items]
        assert total == 4
        assert titles[0] == "everyone"  # newest first
        assert "theirs" not in titles
        assert "ops" not in titles

    async def test_admin_list_includes_admin_and_both(self, db_session):
        await self._seed(db_session)
        items, total = await notification_service.get_admin_notifications(db_session)
        assert total == 2
        assert {n.title for n in items} == {"everyone", "ops"}

    async def test_pagination(self, db_session):
        await self._seed(db_session)
        items, total = await notification_service.get_user_notifications(db_session, "u-100", limit=2, offset=2)
        assert total == 4
        assert len(items) == 2

    async def test_unread_count_and_mark_all(self, db_session):
        await self._seed(db_session)
        assert await notification_service.get_unread_count(db_session, "u-100") == 3

        updated = await notification_service.mark_all_as_read(db_session, "u-100")
        assert updated == 3
        assert await notification_service.get_unread_count(db_session, "u-100") == 0
        assert await notification_service.get_unread_count(db_session, "u-200") == 1

    async def test_mark_as_read(self, db_session):
        await self._seed(db_session)
        items, _ = await notification_service.get_user_notifications(db_session, "u-100")
        target = items[-1]
        updated = await notification_service.mark_as_read(db_session, target.id)
        assert updated.is_read is True

    async def test_delete_and_missing(self, db_session):
        await self._seed(db_session)
        items, _ = await notification_service.get_admin_notifications(db_session)
        await notification_service.delete_notification(db_session, items[0].id)

        with pytest.raises(NotFoundError):
            await notification_service.get_notification(db_session, items[0].id)
        with pytest.raises(NotFoundError):
            await notification_service.delete_notification(db_session, items[0].id)
