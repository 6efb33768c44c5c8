import pytest_asyncio

from care_portal.enrollments.crud import store
from care_portal.enrollments.models import ServiceType

from helpers import make_enrollment

ADMIN = {"X-Actor-Id": "admin_1"}


@pytest_asyncio.fixture
async def seeded(session, staff_members):
    await store.save(session, make_enrollment(enrollment_id="enr_1", staff_id="th_1"))
    await store.save(
        session,
        make_enrollment(
            enrollment_id="enr_2",
            service_name="Art",
            service_type=ServiceType.group_class,
            staff_id="te_1",
            staff_name="Lena Moss",
        ),
    )


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_child_overview(client, seeded):
    response = await client.get("/api/v1/children/child_1/enrollments")

    assert response.status_code == 200
    body = response.json()
    assert body["child_id"] == "child_1"
    assert [e["enrollment_id"] for e in body["active"]] == ["enr_1", "enr_2"]
    assert [e["enrollment_id"] for e in body["therapy"]] == ["enr_1"]
    assert [e["enrollment_id"] for e in body["group_class"]] == ["enr_2"]
    assert body["inactive"] == []


async def test_child_overview_for_teacher_viewer(client, seeded):
    response = await client.get(
        "/api/v1/children/child_1/enrollments",
        headers={"X-Viewer-Role": "teacher", "X-Viewer-Id": "te_1"},
    )

    assert response.status_code == 200
    assert [e["enrollment_id"] for e in response.json()["active"]] == ["enr_2"]


async def test_staff_viewer_needs_id(client, seeded):
    response = await client.get(
        "/api/v1/children/child_1/enrollments", headers={"X-Viewer-Role": "therapist"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_unknown_viewer_role(client, seeded):
    response = await client.get(
        "/api/v1/children/child_1/enrollments", headers={"X-Viewer-Role": "janitor"}
    )

    assert response.status_code == 400


async def test_change_staff_and_read_back(client, seeded):
    response = await client.post(
        "/api/v1/enrollments/enr_1/change-staff",
        json={
            "new_staff": {"staff_id": "th_2", "staff_name": "Owen Price", "staff_role": "therapist"},
            "reason": "staff_transferred",
        },
        headers=ADMIN,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["enrollment"]["current_staff"]["staff_id"] == "th_2"
    assert body["enrollment"]["staff_history"][0]["removed_by"] == "admin_1"

    overview = await client.get("/api/v1/children/child_1/enrollments")
    therapy = overview.json()["therapy"][0]
    assert therapy["current_staff"]["staff_id"] == "th_2"

    history = await client.get("/api/v1/children/child_1/staff-history")
    entries = history.json()
    assert entries[0]["staff_id"] == "th_2"
    assert entries[0]["is_current"] is True
    assert {"staff_id": "th_1", "is_current": False}.items() <= next(
        e for e in entries if e["staff_id"] == "th_1"
    ).items()


async def test_change_staff_role_mismatch(client, seeded):
    response = await client.post(
        "/api/v1/enrollments/enr_1/change-staff",
        json={
            "new_staff": {"staff_id": "te_1", "staff_name": "Lena Moss", "staff_role": "teacher"},
            "reason": "admin_decision",
        },
        headers=ADMIN,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["kind"] == "INVALID_REQUEST"


async def test_change_staff_unknown_enrollment(client, seeded):
    response = await client.post(
        "/api/v1/enrollments/missing/change-staff",
        json={
            "new_staff": {"staff_id": "th_2", "staff_name": "Owen Price", "staff_role": "therapist"},
            "reason": "admin_decision",
        },
        headers=ADMIN,
    )

    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "NOT_FOUND"


async def test_mutation_requires_actor(client, seeded):
    response = await client.post(
        "/api/v1/enrollments/enr_1/deactivate",
        json={"reason": "Goals Achieved", "confirmation": "disable"},
    )

    assert response.status_code == 401


async def test_deactivate_and_reactivate(client, seeded):
    unconfirmed = await client.post(
        "/api/v1/enrollments/enr_2/deactivate",
        json={"reason": "Goals Achieved"},
        headers=ADMIN,
    )
    assert unconfirmed.status_code == 400

    deactivated = await client.post(
        "/api/v1/enrollments/enr_2/deactivate",
        json={"reason": "Goals Achieved", "confirmation": "DISABLE"},
        headers=ADMIN,
    )
    assert deactivated.status_code == 200
    assert deactivated.json()["enrollment"]["status"] == "inactive"
    assert deactivated.json()["enrollment"]["status_change_reason"] == "Goals Achieved"

    overview = (await client.get("/api/v1/children/child_1/enrollments")).json()
    assert [e["enrollment_id"] for e in overview["inactive"]] == ["enr_2"]

    reactivated = await client.post(
        "/api/v1/enrollments/enr_2/reactivate",
        json={"new_staff": {"staff_id": "te_2", "staff_name": "Carl Ames", "staff_role": "teacher"}},
        headers=ADMIN,
    )
    assert reactivated.status_code == 200
    enrollment = reactivated.json()["enrollment"]
    assert enrollment["status"] == "active"
    assert enrollment["current_staff"]["staff_id"] == "te_2"
    assert len(enrollment["staff_history"]) == 1


async def test_enroll_child(client, staff_members):
    payload = {
        "service_id": "svc_speech",
        "service_name": "Speech Therapy",
        "service_type": "Therapy",
        "staff": {"staff_id": "th_2", "staff_name": "Owen Price", "staff_role": "therapist"},
        "frequency": "Weekly",
    }

    created = await client.post("/api/v1/children/child_7/enrollments", json=payload, headers=ADMIN)
    duplicate = await client.post("/api/v1/children/child_7/enrollments", json=payload, headers=ADMIN)

    assert created.status_code == 201
    assert created.json()["enrollment"]["child_id"] == "child_7"
    assert duplicate.status_code == 400
    assert duplicate.json()["error"]["message"] == "Service is already active for this student"


async def test_update_enrollment(client, seeded):
    response = await client.patch(
        "/api/v1/enrollments/enr_1",
        json={"notes": "Uses picture cards"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["enrollment"]["notes"] == "Uses picture cards"
    assert response.json()["enrollment"]["version"] == 2


async def test_eligible_staff(client, seeded):
    response = await client.get("/api/v1/enrollments/enr_2/eligible-staff")

    assert response.status_code == 200
    # te_1 is current, te_2 specializes in Art
    assert [s["staff_id"] for s in response.json()] == ["te_2"]


async def test_eligible_staff_unknown_enrollment(client, seeded):
    response = await client.get("/api/v1/enrollments/missing/eligible-staff")

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


async def test_staff_ids(client, seeded):
    response = await client.get("/api/v1/children/child_1/staff-ids")

    assert response.json() == {
        "assigned_staff_ids": ["th_1", "te_1"],
        "all_historical_staff_ids": ["th_1", "te_1"],
    }


async def test_enrollment_reasons(client):
    response = await client.get("/api/v1/enrollments/reasons")

    body = response.json()
    assert [r["value"] for r in body["staff_removal_reasons"]] == [
        "staff_transferred",
        "scheduling_conflict",
        "staff_resigned",
        "parent_request",
        "admin_decision",
        "other",
    ]
    assert body["service_deactivation_reasons"][-1] == {"value": "other", "label": "Other"}
    assert {"value": "Goals Achieved", "label": "Goals Achieved"} in body["service_deactivation_reasons"]
    assert body["confirmation_token"] == "disable"


async def test_invalid_body_is_rejected(client, seeded):
    response = await client.post(
        "/api/v1/enrollments/enr_1/change-staff",
        json={"new_staff": {"staff_id": "th_2"}, "reason": "admin_decision"},
        headers=ADMIN,
    )

    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"
