"""
Weekly availability and exception tests.

Tests cover:
- Slot upsert keyed by (practitioner, day_of_week, appointment_type)
- Bulk day selection and default reset (rolled back as a whole on failure)
- Storage failures surface as StorageError
- Exception validation per type
- Closed-interval overlap lookup
- /availability endpoints and who may edit them
"""

from datetime import datetime, time, timezone

import pytest
from sqlalchemy import text

from practice_api.core.errors import NotFoundError, StorageError, ValidationError
from practice_api.db.enums import AppointmentType, DayOfWeek, ExceptionType, Role
from practice_api.schemas.availability import ExceptionCreate, ExceptionUpdate, SlotInput
from practice_api.services import availability_service


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """Aware UTC datetime on 2030-01-<day>."""
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


def slot(day: DayOfWeek, start: time, end: time, appointment_type=AppointmentType.IN_PERSON, **kwargs):
    return SlotInput(
        day_of_week=day,
        appointment_type=appointment_type,
        start_time=start,
        end_time=end,
        **kwargs,
    )


# =============================================================================
# Weekly Slots
# =============================================================================

class TestSlots:
    def test_upsert_overwrites_same_key(self, db, practice, practitioner):
        availability_service.upsert_slots(
            db, practice.id, practitioner.id, [slot(DayOfWeek.MONDAY, time(9), time(17))]
        )
        availability_service.upsert_slots(
            db, practice.id, practitioner.id, [slot(DayOfWeek.MONDAY, time(10), time(14))]
        )

        slots = availability_service.list_slots(db, practice.id, practitioner.id)
        assert len(slots) == 1
        assert (slots[0].start_time, slots[0].end_time) == (time(10), time(14))

    def test_types_are_separate_keys(self, db, practice, practitioner):
        availability_service.upsert_slots(db, practice.id, practitioner.id, [
            slot(DayOfWeek.MONDAY, time(9), time(12), AppointmentType.IN_PERSON),
            slot(DayOfWeek.MONDAY, time(13), time(17), AppointmentType.ONLINE),
        ])

        in_person = availability_service.get_slot(
            db, practice.id, practitioner.id, DayOfWeek.MONDAY, AppointmentType.IN_PERSON
        )
        online = availability_service.get_slot(
            db, practice.id, practitioner.id, DayOfWeek.MONDAY, "online"
        )
        assert in_person.end_time == time(12)
        assert online.start_time == time(13)

    def test_later_entry_in_one_call_wins(self, db, practice, practitioner):
        result = availability_service.upsert_slots(db, practice.id, practitioner.id, [
            slot(DayOfWeek.TUESDAY, time(9), time(17)),
            slot(DayOfWeek.TUESDAY, time(8), time(12)),
        ])

        assert len(result) == 1
        assert result[0].start_time == time(8)

    def test_list_orders_by_day(self, db, practice, practitioner):
        availability_service.upsert_slots(db, practice.id, practitioner.id, [
            slot(DayOfWeek.FRIDAY, time(9), time(17)),
            slot(DayOfWeek.SUNDAY, time(9), time(12)),
            slot(DayOfWeek.WEDNESDAY, time(9), time(17)),
        ])

        days = [s.day_of_week for s in availability_service.list_slots(db, practice.id, practitioner.id)]
        assert days == [DayOfWeek.SUNDAY, DayOfWeek.WEDNESDAY, DayOfWeek.FRIDAY]

    def test_end_must_follow_start(self, db, practice, practitioner):
        with pytest.raises(ValidationError):
            availability_service.upsert_slots(
                db, practice.id, practitioner.id, [slot(DayOfWeek.MONDAY, time(17), time(9))]
            )

    def test_bulk_applies_same_hours(self, db, practice, practitioner):
        result = availability_service.set_bulk_availability(
            db, practice.id, practitioner.id,
            days=[1, 3, 5, 3],
            appointment_type=AppointmentType.ONLINE,
            start_time=time(8),
            end_time=time(12),
        )

        assert sorted(s.day_of_week for s in result) == [1, 3, 5]
        assert all(s.appointment_type == "online" for s in result)

    def test_bulk_rejects_bad_day(self, db, practice, practitioner):
        with pytest.raises(ValidationError):
            availability_service.set_bulk_availability(
                db, practice.id, practitioner.id, [7], "in_person", time(9), time(17)
            )

    def test_reset_to_defaults(self, db, practice, practitioner):
        availability_service.upsert_slots(
            db, practice.id, practitioner.id, [slot(DayOfWeek.SATURDAY, time(9), time(12))]
        )

        slots = availability_service.reset_to_defaults(db, practice.id, practitioner.id)

        assert len(slots) == 10
        assert {s.day_of_week for s in slots} == {1, 2, 3, 4, 5}
        assert all((s.start_time, s.end_time) == (time(9), time(17)) for s in slots)
        assert availability_service.get_slot(
            db, practice.id, practitioner.id, DayOfWeek.SATURDAY, "in_person"
        ) is None

    def test_failed_reset_keeps_previous_schedule(self, db, practice, practitioner):
        availability_service.upsert_slots(
            db, practice.id, practitioner.id, [slot(DayOfWeek.SATURDAY, time(9), time(12))]
        )
        db.execute(text(
            "CREATE TRIGGER block_slots BEFORE INSERT ON practitioner_availability "
            "BEGIN SELECT RAISE(ABORT, 'blocked'); END;"
        ))
        db.commit()

        with pytest.raises(StorageError):
            availability_service.reset_to_defaults(db, practice.id, practitioner.id)

        # The delete rolled back with the failed inserts
        [kept] = availability_service.list_slots(
            db, practice.id, practitioner.id, active_only=False
        )
        assert kept.day_of_week == DayOfWeek.SATURDAY
        assert (kept.start_time, kept.end_time) == (time(9), time(12))

    def test_delete_all_slots_storage_failure(self, db, practice, practitioner):
        db.execute(text("DROP TABLE practitioner_availability"))
        db.commit()

        with pytest.raises(StorageError):
            availability_service.delete_all_slots(db, practice.id, practitioner.id)

    def test_deactivated_slot_is_hidden(self, db, practice, practitioner):
        [created] = availability_service.upsert_slots(
            db, practice.id, practitioner.id, [slot(DayOfWeek.MONDAY, time(9), time(17))]
        )

        availability_service.deactivate_slot(db, practice.id, created.id)

        assert availability_service.list_slots(db, practice.id, practitioner.id) == []
        assert len(availability_service.list_slots(
            db, practice.id, practitioner.id, active_only=False
        )) == 1

    def test_update_slot_validates_merged_times(self, db, practice, practitioner):
        [created] = availability_service.upsert_slots(
            db, practice.id, practitioner.id, [slot(DayOfWeek.MONDAY, time(9), time(17))]
        )

        with pytest.raises(ValidationError):
            availability_service.update_slot(db, practice.id, created.id, start_time=time(18))

    def test_slots_scoped_to_practice(self, db, practice, other_practice, practitioner):
        [created] = availability_service.upsert_slots(
            db, practice.id, practitioner.id, [slot(DayOfWeek.MONDAY, time(9), time(17))]
        )

        with pytest.raises(NotFoundError):
            availability_service.get_slot_by_id(db, other_practice.id, created.id)

    def test_overview_groups_by_day(self, db, practice, practitioner):
        availability_service.reset_to_defaults(db, practice.id, practitioner.id)

        overview = availability_service.get_availability_overview(db, practice.id, practitioner.id)

        assert overview["timezone"] == "UTC"
        assert [d["day_name"] for d in overview["days"]][:2] == ["Sunday", "Monday"]
        assert len(overview["days"][DayOfWeek.MONDAY]["slots"]) == 2
        assert overview["days"][DayOfWeek.SUNDAY]["slots"] == []


# =============================================================================
# Exceptions
# =============================================================================

class TestExceptions:
    def test_time_off_clears_unused_fields(self, db, practice, practitioner):
        exception = availability_service.create_exception(
            db, practice.id, practitioner.id,
            ExceptionCreate(
                exception_type=ExceptionType.TIME_OFF,
                start_datetime=at(7, 0),
                end_datetime=at(8, 0),
                modified_start_time=time(9),
                allowed_appointment_types=[AppointmentType.ONLINE],
            ),
        )

        assert exception.modified_start_time is None
        assert exception.allowed_appointment_types is None

    def test_modified_hours_needs_both_times(self, db, practice, practitioner):
        with pytest.raises(ValidationError):
            availability_service.create_exception(
                db, practice.id, practitioner.id,
                ExceptionCreate(
                    exception_type=ExceptionType.MODIFIED_HOURS,
                    start_datetime=at(7, 0),
                    end_datetime=at(8, 0),
                    modified_start_time=time(10),
                ),
            )

    def test_modified_hours_window_order(self, db, practice, practitioner):
        with pytest.raises(ValidationError):
            availability_service.create_exception(
                db, practice.id, practitioner.id,
                ExceptionCreate(
                    exception_type=ExceptionType.MODIFIED_HOURS,
                    start_datetime=at(7, 0),
                    end_datetime=at(8, 0),
                    modified_start_time=time(14),
                    modified_end_time=time(10),
                ),
            )

    def test_type_only_needs_types(self, db, practice, practitioner):
        with pytest.raises(ValidationError):
            availability_service.create_exception(
                db, practice.id, practitioner.id,
                ExceptionCreate(
                    exception_type=ExceptionType.TYPE_ONLY,
                    start_datetime=at(7, 0),
                    end_datetime=at(8, 0),
                    allowed_appointment_types=[],
                ),
            )

    def test_type_only_dedupes_types(self, db, practice, practitioner):
        exception = availability_service.create_exception(
            db, practice.id, practitioner.id,
            ExceptionCreate(
                exception_type=ExceptionType.TYPE_ONLY,
                start_datetime=at(7, 0),
                end_datetime=at(8, 0),
                allowed_appointment_types=["online", "online"],
            ),
        )
        assert exception.allowed_appointment_types == ["online"]

    def test_range_must_be_ordered(self, db, practice, practitioner):
        with pytest.raises(ValidationError):
            availability_service.create_exception(
                db, practice.id, practitioner.id,
                ExceptionCreate(
                    exception_type=ExceptionType.TIME_OFF,
                    start_datetime=at(8, 0),
                    end_datetime=at(8, 0),
                ),
            )

    def test_overlapping_exceptions_are_allowed(self, db, practice, practitioner):
        for day in (7, 8):
            availability_service.create_exception(
                db, practice.id, practitioner.id,
                ExceptionCreate(
                    exception_type=ExceptionType.TIME_OFF,
                    start_datetime=at(day, 0),
                    end_datetime=at(9, 0),
                ),
            )
        assert len(availability_service.list_exceptions(db, practice.id, practitioner.id)) == 2

    def test_find_overlapping_is_closed_interval(self, db, practice, practitioner):
        availability_service.create_exception(
            db, practice.id, practitioner.id,
            ExceptionCreate(
                exception_type=ExceptionType.TIME_OFF,
                start_datetime=at(7, 10),
                end_datetime=at(7, 11),
            ),
        )

        touching = availability_service.find_overlapping(
            db, practice.id, practitioner.id, at(7, 11), at(7, 12)
        )
        apart = availability_service.find_overlapping(
            db, practice.id, practitioner.id, at(7, 11, 1), at(7, 12)
        )
        assert len(touching) == 1
        assert apart == []

    def test_inactive_exceptions_do_not_overlap(self, db, practice, practitioner):
        exception = availability_service.create_exception(
            db, practice.id, practitioner.id,
            ExceptionCreate(
                exception_type=ExceptionType.TIME_OFF,
                start_datetime=at(7, 0),
                end_datetime=at(8, 0),
            ),
        )
        availability_service.deactivate_exception(db, practice.id, exception.id)

        assert availability_service.find_overlapping(
            db, practice.id, practitioner.id, at(7, 9), at(7, 10)
        ) == []

    def test_update_revalidates_merged_exception(self, db, practice, practitioner):
        exception = availability_service.create_exception(
            db, practice.id, practitioner.id,
            ExceptionCreate(
                exception_type=ExceptionType.TIME_OFF,
                start_datetime=at(7, 0),
                end_datetime=at(8, 0),
            ),
        )

        with pytest.raises(ValidationError):
            availability_service.update_exception(
                db, practice.id, exception.id,
                ExceptionUpdate(exception_type=ExceptionType.MODIFIED_HOURS),
            )

    def test_update_keeps_stored_range(self, db, practice, practitioner):
        exception = availability_service.create_exception(
            db, practice.id, practitioner.id,
            ExceptionCreate(
                exception_type=ExceptionType.TIME_OFF,
                start_datetime=at(7, 0),
                end_datetime=at(8, 0),
            ),
        )

        updated = availability_service.update_exception(
            db, practice.id, exception.id,
            ExceptionUpdate(
                exception_type=ExceptionType.MODIFIED_HOURS,
                modified_start_time=time(10),
                modified_end_time=time(12),
                description="Short day",
            ),
        )

        assert updated.exception_type == "modified_hours"
        assert updated.start_datetime.replace(tzinfo=None) == datetime(2030, 1, 7, 0, 0)
        assert updated.description == "Short day"

    def test_create_exception_storage_failure(self, db, practice, practitioner):
        db.execute(text("DROP TABLE availability_exceptions"))
        db.commit()

        with pytest.raises(StorageError):
            availability_service.create_exception(
                db, practice.id, practitioner.id,
                ExceptionCreate(
                    exception_type=ExceptionType.TIME_OFF,
                    start_datetime=at(7, 0),
                    end_datetime=at(8, 0),
                ),
            )


# =============================================================================
# API
# =============================================================================

@pytest.mark.asyncio
async def test_practitioner_edits_own_schedule(client, login_as, practitioner):
    login_as(practitioner, Role.PRACTITIONER)

    response = await client.put("/availability/slots", json={
        "slots": [
            {"day_of_week": 1, "appointment_type": "in_person", "start_time": "09:00", "end_time": "17:00"},
        ],
    })
    assert response.status_code == 200, response.text

    overview = await client.get("/availability")
    assert overview.status_code == 200
    monday = overview.json()["days"][1]
    assert monday["day_name"] == "Monday"
    assert monday["slots"][0]["start_time"] == "09:00:00"


@pytest.mark.asyncio
async def test_admin_resets_practitioner_schedule(client, login_as, admin, practitioner):
    login_as(admin, Role.ADMIN)

    response = await client.post(f"/availability/reset?practitioner_id={practitioner.id}")

    assert response.status_code == 200, response.text
    assert len(response.json()) == 10


@pytest.mark.asyncio
async def test_assistant_cannot_edit_schedule(
    client, login_as, db, practice, assistant, practitioner
):
    login_as(assistant, Role.ASSISTANT)

    response = await client.post("/availability/bulk", json={
        "practitioner_id": str(practitioner.id),
        "days": [1, 2],
        "appointment_type": "online",
        "start_time": "09:00",
        "end_time": "12:00",
    })

    assert response.status_code == 403
    assert availability_service.list_slots(db, practice.id, practitioner.id) == []


@pytest.mark.asyncio
async def test_practitioner_bulk_is_pinned_to_self(client, login_as, practitioner, other_practitioner):
    login_as(practitioner, Role.PRACTITIONER)

    # Practitioners are pinned to their own schedule
    response = await client.post("/availability/bulk", json={
        "practitioner_id": str(other_practitioner.id),
        "days": [1],
        "appointment_type": "online",
        "start_time": "09:00",
        "end_time": "12:00",
    })

    assert response.status_code == 200
    assert all(row["practitioner_id"] == str(practitioner.id) for row in response.json())


@pytest.mark.asyncio
async def test_exception_api_validation(client, login_as, practitioner):
    login_as(practitioner, Role.PRACTITIONER)

    response = await client.post("/availability/exceptions", json={
        "exception_type": "modified_hours",
        "start_datetime": "2030-01-07T00:00:00",
        "end_datetime": "2030-01-08T00:00:00",
        "modified_start_time": "10:00",
    })

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_exception_create_and_list(client, login_as, practitioner):
    login_as(practitioner, Role.PRACTITIONER)

    created = await client.post("/availability/exceptions", json={
        "exception_type": "type_only",
        "start_datetime": "2030-01-07T00:00:00Z",
        "end_datetime": "2030-01-08T00:00:00Z",
        "allowed_appointment_types": ["online"],
        "description": "Remote week",
    })
    assert created.status_code == 201, created.text

    listed = await client.get("/availability/exceptions")
    assert listed.status_code == 200
    assert [e["description"] for e in listed.json()] == ["Remote week"]
