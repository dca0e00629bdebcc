# backend/edu_erp/tests/unit/test_notification_service.py
"""
Unit tests for in-app notifications and the e-mail fan-out.
"""

import asyncio
import uuid
from unittest.mock import AsyncMock

import pytest

from edu_erp.core.exceptions import NotificationNotFoundError, PersistenceError
from edu_erp.models import UserRole
from edu_erp.services import ExamNotificationType

DETAILS = {
    "exam_name": "Final Exam",
    "class_name": "Grade 8",
    "start_date": "01 Apr 2025",
    "end_date": "05 Apr 2025",
}


class TestSendToUser:
    @pytest.mark.asyncio
    async def test_creates_notification_without_email(
        self, notification_service, builder, store, email_service
    ):
        user = builder.user(UserRole.STUDENT, "Asha")

        notification = await notification_service.send_to_user(
            user.id, "GENERAL", "Hello", "Welcome back"
        )

        assert store.notifications == [notification]
        assert notification.is_read is False
        email_service.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sends_templated_email(
        self, notification_service, builder, email_service
    ):
        user = builder.user(UserRole.PARENT, "Ravi Kumar")

        await notification_service.send_to_user(
            user.id, "GENERAL", "Fee reminder", "Due next week", send_email=True
        )

        email_service.send_email.assert_awaited_once()
        kwargs = email_service.send_email.await_args.kwargs
        assert kwargs["subject"] == "Fee reminder"
        assert kwargs["recipients"] == [user.email]
        assert kwargs["template_name"] == "notification"
        assert kwargs["context"]["user_name"] == "Ravi Kumar"
        assert kwargs["context"]["message"] == "Due next week"
        assert kwargs["context"]["dashboard_url"] == "https://erp.school.test/dashboard"

    @pytest.mark.asyncio
    async def test_missing_user_skips_email(
        self, notification_service, store, email_service
    ):
        await notification_service.send_to_user(
            uuid.uuid4(), "GENERAL", "Hi", "There", send_email=True
        )

        assert len(store.notifications) == 1
        email_service.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_undelivered_email_is_counted_not_raised(
        self, notification_service, builder, email_service, metric, caplog
    ):
        user = builder.user(UserRole.TEACHER)
        email_service.send_email.return_value = False
        labels = {"notification_type": "UNDELIVERABLE_TEST"}
        before = metric("email_delivery_failures_total", labels)

        notification = await notification_service.send_to_user(
            user.id, "UNDELIVERABLE_TEST", "T", "M", send_email=True
        )

        assert notification is not None
        assert metric("email_delivery_failures_total", labels) == before + 1
        assert "was not delivered" in caplog.text


class TestSendToMultipleUsers:
    @pytest.mark.asyncio
    async def test_one_row_per_user_and_single_commit(
        self, notification_service, builder, store, notification_repo
    ):
        users = [builder.user(UserRole.STUDENT) for _ in range(4)]

        rows = await notification_service.send_to_multiple_users(
            [u.id for u in users], "GENERAL", "T", "M"
        )

        assert len(rows) == 4
        assert [n.user_id for n in store.notifications] == [u.id for u in users]
        assert notification_repo.commits == 1

    @pytest.mark.asyncio
    async def test_empty_recipient_list(self, notification_service, notification_repo):
        assert await notification_service.send_to_multiple_users([], "G", "T", "M") == []
        assert notification_repo.commits == 0

    @pytest.mark.asyncio
    async def test_email_fan_out_is_bounded(
        self, notification_service, builder, email_service, settings
    ):
        users = [builder.user(UserRole.STUDENT) for _ in range(10)]
        in_flight = 0
        peak = 0

        async def slow_send(**kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return True

        email_service.send_email = AsyncMock(side_effect=slow_send)

        await notification_service.send_to_multiple_users(
            [u.id for u in users], "GENERAL", "T", "M", send_email=True
        )

        assert email_service.send_email.await_count == 10
        assert peak <= settings.NOTIFICATION_MAX_CONCURRENCY
        assert peak > 1

    @pytest.mark.asyncio
    async def test_dispatch_error_propagates(
        self, notification_service, builder, store, email_service
    ):
        users = [builder.user(UserRole.STUDENT) for _ in range(3)]
        email_service.send_email = AsyncMock(side_effect=RuntimeError("smtp exploded"))

        with pytest.raises(RuntimeError, match="smtp exploded"):
            await notification_service.send_to_multiple_users(
                [u.id for u in users], "GENERAL", "T", "M", send_email=True
            )

        # Rows were committed before dispatch started
        assert len(store.notifications) == 3


class TestExamTimetableNotification:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "notification_type, title, message",
        [
            (
                ExamNotificationType.SCHEDULED,
                "New Exam Scheduled: Final Exam",
                "Final Exam has been scheduled for Grade 8 from 01 Apr 2025 to "
                "05 Apr 2025. Please check your exam timetable for details.",
            ),
            (
                ExamNotificationType.UPDATED,
                "Exam Updated: Final Exam",
                "Final Exam for Grade 8 has been updated. "
                "Please review the latest timetable.",
            ),
            (
                ExamNotificationType.CANCELLED,
                "Exam Cancelled: Final Exam",
                "Final Exam for Grade 8 has been cancelled.",
            ),
        ],
    )
    async def test_n_recipients_produce_n_log_and_n_notification_rows(
        self, notification_service, builder, store, notification_type, title, message
    ):
        users = [builder.user(UserRole.STUDENT) for _ in range(3)]
        timetable_id = uuid.uuid4()

        written = await notification_service.send_exam_timetable_notification(
            timetable_id, [u.id for u in users], notification_type, DETAILS
        )

        assert written == 3
        assert len(store.timetable_log) == 3
        assert len(store.notifications) == 3
        for entry in store.timetable_log:
            assert entry.type == f"EXAM_{notification_type.value}"
            assert entry.title == title
            assert entry.message == message
            assert entry.sent_via_app is True
            assert entry.sent_via_email is False
            assert entry.timetable_id == timetable_id
        for notification in store.notifications:
            assert notification.title == title
            assert notification.message == message
            assert notification.entity_type == "EXAM_TIMETABLE"
            assert notification.entity_id == str(timetable_id)

    @pytest.mark.asyncio
    async def test_accepts_plain_string_type(self, notification_service, builder, store):
        user = builder.user(UserRole.STUDENT)

        await notification_service.send_exam_timetable_notification(
            uuid.uuid4(), [user.id], "CANCELLED", DETAILS
        )

        assert store.timetable_log[0].type == "EXAM_CANCELLED"

    @pytest.mark.asyncio
    async def test_emails_every_recipient(self, notification_service, builder, email_service):
        users = [builder.user(UserRole.STUDENT) for _ in range(2)]

        await notification_service.send_exam_timetable_notification(
            uuid.uuid4(), [u.id for u in users], ExamNotificationType.SCHEDULED, DETAILS
        )

        sent_to = {
            call.kwargs["recipients"][0] for call in email_service.send_email.await_args_list
        }
        assert sent_to == {u.email for u in users}


class TestOtherNotifications:
    @pytest.mark.asyncio
    async def test_result_published(self, notification_service, builder, store):
        user = builder.user(UserRole.STUDENT)
        exam_id = uuid.uuid4()

        await notification_service.send_result_published_notification(
            exam_id, [user.id], "Term 1"
        )

        notification = store.notifications[0]
        assert notification.type == "RESULTS_PUBLISHED"
        assert notification.title == "Results Published: Term 1"
        assert notification.message == (
            "Your results for Term 1 have been published. "
            "Check your dashboard to view your performance."
        )
        assert notification.entity_type == "EXAM"
        assert notification.entity_id == str(exam_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url, suffix",
        [(None, ""), ("https://files.test/rc.pdf", " Download it from your dashboard.")],
    )
    async def test_report_card(self, notification_service, builder, store, url, suffix):
        user = builder.user(UserRole.STUDENT)

        await notification_service.send_report_card_notification(
            [user.id], "Term 1", report_card_url=url
        )

        notification = store.notifications[0]
        assert notification.type == "REPORT_CARD_AVAILABLE"
        assert notification.title == "Report Card Available: Term 1"
        assert notification.message == (
            "Your report card for Term 1 is now available for download." + suffix
        )
        assert notification.entity_type == "REPORT_CARD"
        assert notification.entity_id == "Term 1"


class TestReadState:
    @pytest.mark.asyncio
    async def test_mark_as_read(self, notification_service, builder):
        user = builder.user(UserRole.STUDENT)
        notification = await notification_service.send_to_user(user.id, "G", "T", "M")

        updated = await notification_service.mark_as_read(notification.id)

        assert updated.is_read is True
        assert updated.read_at is not None

    @pytest.mark.asyncio
    async def test_mark_as_read_unknown(self, notification_service):
        with pytest.raises(NotificationNotFoundError):
            await notification_service.mark_as_read(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_mark_as_read_of_someone_else(self, notification_service, builder):
        owner = builder.user(UserRole.STUDENT)
        notification = await notification_service.send_to_user(owner.id, "G", "T", "M")

        with pytest.raises(NotificationNotFoundError):
            await notification_service.mark_as_read(notification.id, user_id=uuid.uuid4())
        assert notification.is_read is False

    @pytest.mark.asyncio
    async def test_unread_count_and_mark_all(self, notification_service, builder):
        user = builder.user(UserRole.STUDENT)
        other = builder.user(UserRole.STUDENT)
        await notification_service.send_to_multiple_users(
            [user.id, user.id, other.id], "G", "T", "M"
        )

        assert await notification_service.get_unread_count(user.id) == 2
        assert await notification_service.mark_all_as_read(user.id) == 2
        assert await notification_service.get_unread_count(user.id) == 0
        assert await notification_service.get_unread_count(other.id) == 1

    @pytest.mark.asyncio
    async def test_user_notifications_newest_first(self, notification_service, builder):
        user = builder.user(UserRole.STUDENT)
        for title in ("first", "second", "third"):
            await notification_service.send_to_user(user.id, "G", title, "M")

        latest = await notification_service.get_user_notifications(user.id, limit=2)

        assert [n.title for n in latest] == ["third", "second"]

    @pytest.mark.asyncio
    async def test_unread_count_swallows_errors(
        self, notification_service, notification_repo, metric
    ):
        labels = {"operation": "get_unread_count"}
        before = metric("notification_query_failures_total", labels)
        notification_repo.count_unread = AsyncMock(
            side_effect=PersistenceError("timeout")
        )

        assert await notification_service.get_unread_count(uuid.uuid4()) == 0
        assert metric("notification_query_failures_total", labels) == before + 1
