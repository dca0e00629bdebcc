# backend/edu_erp/tests/unit/test_visibility_service.py
"""
Unit tests for the exam timetable publish / update / cancel workflow.
"""

import re
import uuid
from unittest.mock import AsyncMock

import pytest

from edu_erp.core.exceptions import (
    PersistenceError,
    TimetableAlreadyPublishedError,
    TimetableNotFoundError,
    TimetableNotPublishedError,
)
from edu_erp.models import SlotType, StudentStatus, TimetableStatus, UserRole

HALL_TICKET = re.compile(r"^[0-9A-F]{4}-[A-Z0-9]{1,3}-\d{4}-\d{4}$")


@pytest.fixture
def class_world(builder):
    """
    Three active students (S3 without a login), one exam slot supervised by
    a teacher, a primary class teacher and one guardian shared by S1 and S2.
    """
    unit = builder.unit("Class 10 A")
    s1 = builder.student(unit, "A001")
    s2 = builder.student(unit, "A002")
    s3 = builder.student(unit, "A003", with_login=False)
    builder.student(unit, "A004", status=StudentStatus.TRANSFERRED)

    supervisor = builder.teacher("Mr. Supervisor")
    class_teacher = builder.teacher("Ms. Class Teacher")
    builder.class_teacher(class_teacher, unit)
    guardian = builder.guardian(s1, s2)

    timetable = builder.timetable(
        unit,
        slots=[
            {"supervisor": supervisor, "start_time": "09:30"},
            {"type": SlotType.BREAK.value, "start_time": "12:30"},
        ],
    )
    return {
        "unit": unit,
        "students": [s1, s2, s3],
        "supervisor": supervisor,
        "class_teacher": class_teacher,
        "guardian": guardian,
        "timetable": timetable,
    }


class TestPublishTimetable:
    @pytest.mark.asyncio
    async def test_publish_notifies_exact_recipient_set(
        self, visibility_service, store, class_world
    ):
        """u1, u2 (students), u4 (supervisor), u5 (class teacher), u6 (guardian)."""
        timetable = class_world["timetable"]
        s1, s2, _ = class_world["students"]
        expected = {
            s1.user_id,
            s2.user_id,
            class_world["supervisor"].user_id,
            class_world["class_teacher"].user_id,
            class_world["guardian"].user_id,
        }
        publisher = uuid.uuid4()

        result = await visibility_service.publish_timetable(timetable.id, publisher)

        assert result == {
            "success": True,
            "notified_users": 5,
            "students": 3,
            "teachers": 1,
        }
        assert {n.user_id for n in store.notifications} == expected
        assert len(store.notifications) == 5
        assert {entry.user_id for entry in store.timetable_log} == expected
        assert timetable.status == TimetableStatus.PUBLISHED.value
        assert timetable.published_at is not None
        assert timetable.published_by == publisher

    @pytest.mark.asyncio
    async def test_publish_creates_one_admit_card_per_active_student(
        self, visibility_service, store, class_world
    ):
        timetable = class_world["timetable"]

        await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        cards = [c for c in store.admit_cards if c.timetable_id == timetable.id]
        assert len(cards) == 3
        assert {c.student_id for c in cards} == {
            s.id for s in class_world["students"]
        }
        numbers = [c.hall_ticket_no for c in cards]
        assert len(set(numbers)) == 3
        assert all(HALL_TICKET.match(n) for n in numbers)
        assert sorted(n[-4:] for n in numbers) == ["0001", "0002", "0003"]
        assert all(c.reporting_time == "09:00" for c in cards)
        assert all(c.exam_center == "Green Valley High" for c in cards)

    @pytest.mark.asyncio
    async def test_publish_writes_audit_entry_and_scheduled_messages(
        self, visibility_service, store, class_world
    ):
        timetable = class_world["timetable"]
        publisher = uuid.uuid4()

        await visibility_service.publish_timetable(timetable.id, publisher)

        assert len(store.audit_logs) == 1
        entry = store.audit_logs[0]
        assert entry.action == "PUBLISH"
        assert entry.entity_type == "EXAM_TIMETABLE"
        assert entry.entity_id == str(timetable.id)
        assert entry.user_id == publisher

        notification = store.notifications[0]
        assert notification.type == "EXAM_SCHEDULED"
        assert notification.title == "New Exam Scheduled: Mid Term Examination"
        assert notification.message == (
            "Mid Term Examination has been scheduled for Class 10 A from "
            "10 Mar 2025 to 14 Mar 2025. Please check your exam timetable for details."
        )
        assert notification.entity_type == "EXAM_TIMETABLE"
        assert notification.entity_id == str(timetable.id)

    @pytest.mark.asyncio
    async def test_publish_already_published_makes_no_writes(
        self, visibility_service, builder, store
    ):
        unit = builder.unit()
        builder.student(unit, "B001")
        timetable = builder.timetable(unit, status=TimetableStatus.PUBLISHED)

        with pytest.raises(TimetableAlreadyPublishedError) as exc_info:
            await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        assert str(exc_info.value) == "Timetable is already published"
        assert store.notifications == []
        assert store.timetable_log == []
        assert store.admit_cards == []
        assert store.audit_logs == []

    @pytest.mark.asyncio
    async def test_publish_unknown_timetable(self, visibility_service, store):
        with pytest.raises(TimetableNotFoundError) as exc_info:
            await visibility_service.publish_timetable(uuid.uuid4(), uuid.uuid4())

        assert str(exc_info.value) == "Timetable not found"
        assert exc_info.value.status_code == 404
        assert store.notifications == []
        assert store.audit_logs == []

    @pytest.mark.asyncio
    async def test_lost_publish_race_rolls_back(
        self, visibility_service, timetable_repo, store, class_world
    ):
        timetable_repo.mark_published = AsyncMock(return_value=False)

        with pytest.raises(TimetableAlreadyPublishedError):
            await visibility_service.publish_timetable(
                class_world["timetable"].id, uuid.uuid4()
            )

        assert timetable_repo.rollbacks == 1
        assert store.admit_cards == []
        assert store.notifications == []

    @pytest.mark.asyncio
    async def test_admit_card_failure_rolls_back_status_flip(
        self, visibility_service, timetable_repo, store, class_world
    ):
        timetable = class_world["timetable"]
        timetable_repo.create_admit_cards = AsyncMock(
            side_effect=PersistenceError("insert failed", operation="create_admit_cards")
        )

        with pytest.raises(PersistenceError):
            await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        assert timetable.status == TimetableStatus.DRAFT.value
        assert timetable.published_at is None
        assert store.admit_cards == []
        assert store.notifications == []

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_publish(
        self, visibility_service, notification_service, store, class_world
    ):
        timetable = class_world["timetable"]
        notification_service.send_exam_timetable_notification = AsyncMock(
            side_effect=RuntimeError("gateway down")
        )

        with pytest.raises(RuntimeError):
            await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        assert timetable.status == TimetableStatus.PUBLISHED.value
        assert len(store.admit_cards) == 3
        assert store.audit_logs == []

    @pytest.mark.asyncio
    async def test_publish_with_no_students(self, visibility_service, builder, store):
        unit = builder.unit("Empty Class")
        timetable = builder.timetable(unit)

        result = await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        assert result["notified_users"] == 0
        assert result["students"] == 0
        assert store.admit_cards == []
        assert store.notifications == []
        assert timetable.status == TimetableStatus.PUBLISHED.value

    @pytest.mark.asyncio
    async def test_supervisor_without_login_is_not_counted(
        self, visibility_service, builder
    ):
        unit = builder.unit()
        builder.student(unit, "C001")
        no_login = builder.teacher("Offline", with_login=False)
        timetable = builder.timetable(unit, slots=[{"supervisor": no_login}])

        result = await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        assert result["teachers"] == 0
        assert result["notified_users"] == 1

    @pytest.mark.asyncio
    async def test_inactive_or_secondary_class_teacher_is_skipped(
        self, visibility_service, builder
    ):
        unit = builder.unit()
        builder.student(unit, "D001")
        builder.class_teacher(builder.teacher("Secondary"), unit, is_primary=False)
        builder.class_teacher(builder.teacher("Former"), unit, is_active=False)
        timetable = builder.timetable(unit)

        result = await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        assert result["notified_users"] == 1


class TestAdmitCards:
    @pytest.mark.asyncio
    async def test_regenerate_continues_numbering(
        self, visibility_service, builder, store, class_world
    ):
        timetable = class_world["timetable"]
        await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        late_joiner = builder.student(class_world["unit"], "A005")
        generated = await visibility_service.regenerate_admit_cards(timetable.id)

        assert generated == 1
        cards = [c for c in store.admit_cards if c.timetable_id == timetable.id]
        assert len(cards) == 4
        new_card = next(c for c in cards if c.student_id == late_joiner.id)
        assert new_card.hall_ticket_no.endswith("-0004")
        assert len({c.hall_ticket_no for c in cards}) == 4

    @pytest.mark.asyncio
    async def test_regenerate_is_idempotent(self, visibility_service, store, class_world):
        timetable = class_world["timetable"]
        await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        assert await visibility_service.regenerate_admit_cards(timetable.id) == 0
        assert len(store.admit_cards) == 3

    @pytest.mark.asyncio
    async def test_regenerate_includes_section_students(
        self, visibility_service, builder, store, class_world
    ):
        timetable = class_world["timetable"]
        await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        section = builder.unit("Class 10 A - Blue", parent=class_world["unit"])
        in_section = builder.student(section, "B001")
        builder.student(builder.unit("Class 10 B"), "X001")

        assert await visibility_service.regenerate_admit_cards(timetable.id) == 1
        assert {c.student_id for c in store.admit_cards} == {
            *(s.id for s in class_world["students"]),
            in_section.id,
        }

    @pytest.mark.asyncio
    async def test_publish_ignores_section_students(
        self, visibility_service, builder, store, class_world
    ):
        section = builder.unit("Class 10 A - Blue", parent=class_world["unit"])
        builder.student(section, "B001")

        result = await visibility_service.publish_timetable(
            class_world["timetable"].id, uuid.uuid4()
        )

        assert result["students"] == 3
        assert len(store.admit_cards) == 3

    @pytest.mark.asyncio
    async def test_list_admit_cards_by_hall_ticket(
        self, visibility_service, class_world
    ):
        timetable = class_world["timetable"]
        await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        cards = await visibility_service.list_admit_cards(timetable.id)

        assert [c.hall_ticket_no[-4:] for c in cards] == ["0001", "0002", "0003"]
        assert [c.student.admission_no for c in cards] == ["A001", "A002", "A003"]

    @pytest.mark.asyncio
    async def test_list_admit_cards_unknown_timetable(self, visibility_service):
        with pytest.raises(TimetableNotFoundError):
            await visibility_service.list_admit_cards(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_regenerate_requires_published(self, visibility_service, class_world):
        with pytest.raises(TimetableNotPublishedError):
            await visibility_service.regenerate_admit_cards(class_world["timetable"].id)

    @pytest.mark.asyncio
    async def test_reporting_time_defaults_without_exam_slots(
        self, visibility_service, builder, store
    ):
        unit = builder.unit("Class 9")
        builder.student(unit, "E001")
        timetable = builder.timetable(unit)

        await visibility_service.publish_timetable(timetable.id, uuid.uuid4())

        assert store.admit_cards[0].reporting_time == "08:00"
        assert "-CLA-" in store.admit_cards[0].hall_ticket_no


class TestUpdateAndCancel:
    @pytest.mark.asyncio
    async def test_update_notifies_students_only(
        self, visibility_service, store, class_world
    ):
        timetable = class_world["timetable"]
        s1, s2, _ = class_world["students"]
        changes = {"room": "Hall B"}
        editor = uuid.uuid4()

        result = await visibility_service.update_and_notify(timetable.id, editor, changes)

        assert result == {"success": True, "notified_users": 2}
        assert {n.user_id for n in store.notifications} == {s1.user_id, s2.user_id}
        assert all(n.type == "EXAM_UPDATED" for n in store.notifications)
        assert store.notifications[0].message == (
            "Mid Term Examination for Class 10 A has been updated. "
            "Please review the latest timetable."
        )
        assert timetable.status == TimetableStatus.DRAFT.value

        assert len(store.audit_logs) == 1
        assert store.audit_logs[0].action == "UPDATE"
        assert store.audit_logs[0].new_value == changes
        assert store.audit_logs[0].user_id == editor

    @pytest.mark.asyncio
    async def test_update_unknown_timetable(self, visibility_service):
        with pytest.raises(TimetableNotFoundError):
            await visibility_service.update_and_notify(uuid.uuid4(), uuid.uuid4(), {})

    @pytest.mark.asyncio
    async def test_cancel_sets_status_and_notifies_students(
        self, visibility_service, store, class_world
    ):
        timetable = class_world["timetable"]

        result = await visibility_service.cancel_and_notify(timetable.id, uuid.uuid4())

        assert result == {"success": True, "notified_users": 2}
        assert timetable.status == TimetableStatus.CANCELLED.value
        assert {n.title for n in store.notifications} == {
            "Exam Cancelled: Mid Term Examination"
        }
        assert store.audit_logs[-1].action == "CANCEL"
        assert store.audit_logs[-1].old_value == {"status": "DRAFT"}

    @pytest.mark.asyncio
    async def test_cancel_unknown_timetable(self, visibility_service, store):
        with pytest.raises(TimetableNotFoundError):
            await visibility_service.cancel_and_notify(uuid.uuid4(), uuid.uuid4())
        assert store.audit_logs == []


class TestHasAccess:
    @pytest.mark.asyncio
    async def test_student_in_class(self, visibility_service, store, class_world):
        s1 = class_world["students"][0]
        assert await visibility_service.has_access(
            s1.user_id, class_world["timetable"].id
        )

    @pytest.mark.asyncio
    async def test_student_in_other_class(self, visibility_service, builder, class_world):
        outsider = builder.student(builder.unit("Class 11 B"), "Z001")
        assert not await visibility_service.has_access(
            outsider.user_id, class_world["timetable"].id
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.SCHOOL_ADMIN, UserRole.SUPER_ADMIN])
    async def test_admins_always_have_access(
        self, visibility_service, builder, class_world, role
    ):
        admin = builder.user(role, "Admin")
        assert await visibility_service.has_access(admin.id, class_world["timetable"].id)

    @pytest.mark.asyncio
    async def test_supervising_teacher(self, visibility_service, builder, class_world):
        timetable = class_world["timetable"]
        assert await visibility_service.has_access(
            class_world["supervisor"].user_id, timetable.id
        )
        stranger = builder.teacher("Stranger")
        assert not await visibility_service.has_access(stranger.user_id, timetable.id)

    @pytest.mark.asyncio
    async def test_guardian_of_student_in_class(
        self, visibility_service, builder, class_world
    ):
        timetable = class_world["timetable"]
        assert await visibility_service.has_access(
            class_world["guardian"].user_id, timetable.id
        )

        other_child = builder.student(builder.unit("Class 3"), "Y001")
        other_guardian = builder.guardian(other_child)
        assert not await visibility_service.has_access(
            other_guardian.user_id, timetable.id
        )

    @pytest.mark.asyncio
    async def test_unknown_user_or_timetable(self, visibility_service, class_world):
        s1 = class_world["students"][0]
        assert not await visibility_service.has_access(
            uuid.uuid4(), class_world["timetable"].id
        )
        assert not await visibility_service.has_access(s1.user_id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_user_without_profile(self, visibility_service, builder, class_world):
        parent_without_profile = builder.user(UserRole.PARENT)
        assert not await visibility_service.has_access(
            parent_without_profile.id, class_world["timetable"].id
        )

    @pytest.mark.asyncio
    async def test_lookup_failure_denies(self, visibility_service, user_repo, class_world):
        user_repo.get_with_profiles = AsyncMock(
            side_effect=PersistenceError("connection reset")
        )
        student = class_world["students"][0]

        assert not await visibility_service.has_access(
            student.user_id, class_world["timetable"].id
        )
