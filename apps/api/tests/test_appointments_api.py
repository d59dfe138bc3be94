"""
Appointments API tests.

End-to-end through the router: session cookie -> permission check ->
authorization gate -> booking check -> storage.
"""

import pytest
from sqlalchemy import text

from practice_api.db.enums import Role
from practice_api.services import assignment_service, availability_service


@pytest.fixture
def working_week(db, practice, practitioner, other_practitioner):
    """Default Mon-Fri 09:00-17:00 for both practitioners."""
    availability_service.reset_to_defaults(db, practice.id, practitioner.id)
    availability_service.reset_to_defaults(db, practice.id, other_practitioner.id)


@pytest.fixture
def payload(client_record, practitioner):
    def _payload(start="2030-01-07T10:00:00Z", end="2030-01-07T11:00:00Z", **overrides):
        data = {
            "client_id": str(client_record.id),
            "practitioner_id": str(practitioner.id),
            "appointment_type": "in_person",
            "start_time": start,
            "end_time": end,
        }
        data.update(overrides)
        return data
    return _payload


# =============================================================================
# Create
# =============================================================================

@pytest.mark.asyncio
async def test_practitioner_books_own_calendar(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)

    data = payload()
    del data["practitioner_id"]
    response = await client.post("/appointments", json=data)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["practitioner_id"] == str(practitioner.id)
    assert body["status"] == "scheduled"
    assert body["created_by"] == str(practitioner.id)


@pytest.mark.asyncio
async def test_practitioner_booking_is_pinned_to_self(
    client, login_as, practitioner, other_practitioner, working_week, payload
):
    login_as(practitioner, Role.PRACTITIONER)

    response = await client.post(
        "/appointments", json=payload(practitioner_id=str(other_practitioner.id))
    )

    # Pinned to self rather than rejected
    assert response.status_code == 201, response.text
    assert response.json()["practitioner_id"] == str(practitioner.id)


@pytest.mark.asyncio
async def test_staff_books_for_anyone(
    client, login_as, staff, other_practitioner, working_week, payload
):
    login_as(staff, Role.STAFF)

    response = await client.post(
        "/appointments", json=payload(practitioner_id=str(other_practitioner.id))
    )

    assert response.status_code == 201, response.text


@pytest.mark.asyncio
async def test_assigned_assistant_can_book(
    client, login_as, db, practice, assistant, practitioner, working_week, payload
):
    assignment_service.create_assignment(db, practice.id, assistant.id, practitioner.id)
    login_as(assistant, Role.ASSISTANT)

    response = await client.post("/appointments", json=payload())

    assert response.status_code == 201, response.text
    assert response.json()["created_by"] == str(assistant.id)


@pytest.mark.asyncio
async def test_unassigned_assistant_is_forbidden(
    client, login_as, assistant, working_week, payload
):
    login_as(assistant, Role.ASSISTANT)

    response = await client.post("/appointments", json=payload())

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


@pytest.mark.asyncio
async def test_revoked_role_is_forbidden(
    client, login_as, db, practice, admin, staff, working_week, payload
):
    login_as(admin, Role.ADMIN)
    revoke = await client.put(
        "/permissions/roles/staff",
        json={"permission": "manage_appointments", "is_granted": False},
    )
    assert revoke.status_code == 200

    login_as(staff, Role.STAFF)
    response = await client.post("/appointments", json=payload())

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_without_practitioner_gets_404(client, login_as, admin, working_week, payload):
    login_as(admin, Role.ADMIN)

    data = payload()
    del data["practitioner_id"]
    response = await client.post("/appointments", json=data)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_archived_client_is_not_found(
    client, login_as, db, practitioner, client_record, working_week, payload
):
    client_record.is_archived = True
    db.commit()
    login_as(practitioner, Role.PRACTITIONER)

    response = await client.post("/appointments", json=payload())

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_outside_hours_returns_reason(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)

    response = await client.post(
        "/appointments",
        json=payload(start="2030-01-07T08:00:00Z", end="2030-01-07T09:30:00Z"),
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "conflict"
    assert body["reason"] == "outside_working_hours"
    assert body["has_conflict"] is False


@pytest.mark.asyncio
async def test_double_booking_conflicts(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)

    first = await client.post("/appointments", json=payload())
    overlapping = await client.post(
        "/appointments",
        json=payload(start="2030-01-07T10:30:00Z", end="2030-01-07T11:30:00Z"),
    )
    back_to_back = await client.post(
        "/appointments",
        json=payload(start="2030-01-07T11:00:00Z", end="2030-01-07T12:00:00Z"),
    )

    assert first.status_code == 201
    assert overlapping.status_code == 409
    assert overlapping.json()["reason"] == "conflict"
    assert overlapping.json()["has_conflict"] is True
    assert back_to_back.status_code == 201


@pytest.mark.asyncio
async def test_unauthenticated_request(client, working_week, payload):
    response = await client.post("/appointments", json=payload())

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


@pytest.mark.asyncio
async def test_missing_csrf_header(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)

    response = await client.post(
        "/appointments", json=payload(), headers={"X-Requested-With": ""}
    )

    assert response.status_code == 403


# =============================================================================
# Read
# =============================================================================

@pytest.mark.asyncio
async def test_unassigned_assistant_cannot_read(
    client, login_as, practitioner, assistant, working_week, payload
):
    login_as(practitioner, Role.PRACTITIONER)
    created = await client.post("/appointments", json=payload())
    appointment_id = created.json()["id"]

    login_as(assistant, Role.ASSISTANT)
    response = await client.get(f"/appointments/{appointment_id}")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_appointment(client, login_as, staff):
    login_as(staff, Role.STAFF)

    response = await client.get("/appointments/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_list_is_limited_to_accessible_practitioners(
    client, login_as, db, practice, staff, assistant, practitioner, other_practitioner,
    working_week, payload,
):
    login_as(staff, Role.STAFF)
    await client.post("/appointments", json=payload())
    await client.post("/appointments", json=payload(practitioner_id=str(other_practitioner.id)))

    everything = await client.get("/appointments")
    assert len(everything.json()) == 2

    assignment_service.create_assignment(db, practice.id, assistant.id, other_practitioner.id)
    login_as(assistant, Role.ASSISTANT)

    visible = await client.get("/appointments")
    assert [a["practitioner_id"] for a in visible.json()] == [str(other_practitioner.id)]

    filtered = await client.get(f"/appointments?practitioner_id={practitioner.id}")
    assert filtered.status_code == 403


@pytest.mark.asyncio
async def test_list_filters(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)
    monday = await client.post("/appointments", json=payload())
    await client.post(
        "/appointments",
        json=payload(start="2030-01-08T10:00:00Z", end="2030-01-08T11:00:00Z"),
    )
    await client.post(f"/appointments/{monday.json()['id']}/cancel")

    cancelled = await client.get("/appointments", params={"status": "cancelled"})
    tuesday = await client.get(
        "/appointments",
        params={"date_start": "2030-01-08T00:00:00Z", "date_end": "2030-01-09T00:00:00Z"},
    )

    assert [a["id"] for a in cancelled.json()] == [monday.json()["id"]]
    assert len(tuesday.json()) == 1
    assert tuesday.json()[0]["start_time"].startswith("2030-01-08T10:00:00")


@pytest.mark.asyncio
async def test_stats(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)
    first = await client.post("/appointments", json=payload())
    await client.post(
        "/appointments",
        json=payload(start="2030-01-07T13:00:00Z", end="2030-01-07T14:00:00Z"),
    )
    await client.post(f"/appointments/{first.json()['id']}/cancel")

    response = await client.get("/appointments/stats")

    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 2
    assert stats["by_status"]["scheduled"] == 1
    assert stats["by_status"]["cancelled"] == 1


# =============================================================================
# Update / Cancel / Delete
# =============================================================================

@pytest.mark.asyncio
async def test_cancel_frees_the_slot(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)
    first = await client.post("/appointments", json=payload())

    cancelled = await client.post(f"/appointments/{first.json()['id']}/cancel")
    rebooked = await client.post("/appointments", json=payload())

    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_reschedule_is_rechecked(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)
    first = await client.post("/appointments", json=payload())
    await client.post(
        "/appointments",
        json=payload(start="2030-01-07T13:00:00Z", end="2030-01-07T14:00:00Z"),
    )
    appointment_id = first.json()["id"]

    # Shifting within its own slot does not collide with itself
    shifted = await client.patch(
        f"/appointments/{appointment_id}",
        json={"start_time": "2030-01-07T10:30:00Z", "end_time": "2030-01-07T11:30:00Z"},
    )
    clash = await client.patch(
        f"/appointments/{appointment_id}",
        json={"start_time": "2030-01-07T13:30:00Z", "end_time": "2030-01-07T14:30:00Z"},
    )
    weekend = await client.patch(
        f"/appointments/{appointment_id}",
        json={"start_time": "2030-01-05T10:00:00Z", "end_time": "2030-01-05T11:00:00Z"},
    )

    assert shifted.status_code == 200, shifted.text
    assert clash.status_code == 409
    assert clash.json()["reason"] == "conflict"
    assert weekend.status_code == 409
    assert weekend.json()["reason"] == "no_schedule"


@pytest.mark.asyncio
async def test_reactivating_into_taken_slot(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)
    first = await client.post("/appointments", json=payload())
    await client.post(f"/appointments/{first.json()['id']}/cancel")
    await client.post("/appointments", json=payload())

    response = await client.patch(
        f"/appointments/{first.json()['id']}", json={"status": "scheduled"}
    )

    assert response.status_code == 409
    assert response.json()["reason"] == "conflict"


@pytest.mark.asyncio
async def test_notes_only_update_skips_check(
    client, login_as, db, practice, practitioner, working_week, payload
):
    login_as(practitioner, Role.PRACTITIONER)
    created = await client.post("/appointments", json=payload())
    availability_service.delete_all_slots(db, practice.id, practitioner.id)

    response = await client.patch(
        f"/appointments/{created.json()['id']}", json={"notes": "Bring forms"}
    )

    assert response.status_code == 200, response.text
    assert response.json()["notes"] == "Bring forms"


@pytest.mark.asyncio
async def test_delete(client, login_as, practitioner, working_week, payload):
    login_as(practitioner, Role.PRACTITIONER)
    created = await client.post("/appointments", json=payload())
    appointment_id = created.json()["id"]

    deleted = await client.delete(f"/appointments/{appointment_id}")
    missing = await client.get(f"/appointments/{appointment_id}")

    assert deleted.status_code == 204
    assert missing.status_code == 404


# =============================================================================
# Storage Failures
# =============================================================================

@pytest.mark.asyncio
async def test_failed_insert_returns_storage_error(
    client, login_as, db, practitioner, working_week, payload
):
    db.execute(text(
        "CREATE TRIGGER block_appointments BEFORE INSERT ON appointments "
        "BEGIN SELECT RAISE(ABORT, 'blocked'); END;"
    ))
    db.commit()
    login_as(practitioner, Role.PRACTITIONER)

    response = await client.post("/appointments", json=payload())

    assert response.status_code == 503
    assert response.json()["code"] == "storage_error"


@pytest.mark.asyncio
async def test_failed_read_returns_storage_error(client, login_as, db, staff, practitioner):
    db.execute(text("DROP TABLE appointments"))
    db.commit()
    login_as(staff, Role.STAFF)

    response = await client.get("/appointments")

    assert response.status_code == 503
    assert response.json() == {"detail": "Database unavailable", "code": "storage_error"}


# =============================================================================
# Auth / Health
# =============================================================================

@pytest.mark.asyncio
async def test_me_reports_effective_permissions(client, login_as, practice, assistant):
    login_as(assistant, Role.ASSISTANT)

    response = await client.get("/auth/me")

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["role"] == "assistant"
    assert data["practice_id"] == str(practice.id)
    assert sorted(data["permissions"]) == ["manage_appointments", "manage_clients"]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
