# backend/edu_erp/services/visibility/admit_cards.py
"""Hall ticket numbering and admit card field derivation."""

import re
from typing import Iterable, Optional, Sequence

from ...models import AdmitCard, ExamTimetableSlot, SlotType

DEFAULT_REPORTING_TIME = "08:00"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def class_code(class_name: str) -> str:
    """First three alphanumeric characters of the class name, uppercased."""
    return _NON_ALNUM.sub("", class_name or "")[:3].upper()


def build_hall_ticket_no(
    school_id: object, class_name: str, year: int, sequence: int
) -> str:
    """E.g. ``3F2A-10A-2025-0001``."""
    return f"{str(school_id)[:4].upper()}-{class_code(class_name)}-{year}-{sequence:04d}"


def hall_ticket_sequence(hall_ticket_no: str) -> Optional[int]:
    suffix = hall_ticket_no.rsplit("-", 1)[-1]
    return int(suffix) if suffix.isdigit() else None


def next_sequence(existing: Sequence[AdmitCard]) -> int:
    """Next free sequence number for a timetable that already holds ``existing``."""
    highest = len(existing)
    for card in existing:
        sequence = hall_ticket_sequence(card.hall_ticket_no)
        if sequence is not None and sequence > highest:
            highest = sequence
    return highest + 1


def reporting_time(slots: Iterable[ExamTimetableSlot]) -> str:
    """Start hour of the first exam slot as ``HH:00``."""
    for slot in slots:
        if slot.type != SlotType.EXAM.value:
            continue
        if slot.start_time:
            return f"{slot.start_time.split(':')[0].zfill(2)}:00"
        break
    return DEFAULT_REPORTING_TIME
