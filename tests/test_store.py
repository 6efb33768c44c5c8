from datetime import timedelta

import pytest

from care_portal.core.database import Base
from care_portal.core.exceptions import ConflictError, NotFoundError, PersistenceError
from care_portal.enrollments.crud import store
from care_portal.enrollments.models import EnrollmentStatus, StaffRemovalReason
from care_portal.enrollments.services.state_machine import change_staff, deactivate

from helpers import DAY0, make_enrollment, selection


async def test_save_and_load_round_trip(session):
    saved = await store.save(session, make_enrollment(notes="Prefers mornings"))

    loaded = await store.get_by_id(session, "enr_1")

    assert saved.version == 1
    assert loaded == saved
    assert loaded.current_staff.assigned_at == DAY0
    assert loaded.notes == "Prefers mornings"


async def test_history_is_persisted(session):
    await store.save(session, make_enrollment(staff_id="A"))
    changed = change_staff(
        make_enrollment(staff_id="A"), selection("B"), "other", note="Relocated", now=DAY0 + timedelta(days=4)
    ).enrollment

    await store.save(session, changed, expected_version=1)
    loaded = await store.get_by_id(session, "enr_1")

    assert loaded.version == 2
    assert loaded.staff_history[0].staff_id == "A"
    assert loaded.staff_history[0].duration_days == 4
    assert loaded.staff_history[0].removal_reason == StaffRemovalReason.other
    assert loaded.staff_history[0].removal_note == "Relocated"


async def test_get_missing_raises_not_found(session):
    with pytest.raises(NotFoundError):
        await store.get_by_id(session, "missing")


async def test_list_by_child_only_returns_that_child(session):
    await store.save(session, make_enrollment(enrollment_id="enr_1", child_id="child_1"))
    await store.save(
        session,
        make_enrollment(enrollment_id="enr_2", child_id="child_1", service_name="Art Therapy"),
    )
    await store.save(session, make_enrollment(enrollment_id="enr_3", child_id="child_2"))

    enrollments = await store.list_by_child(session, "child_1")

    assert [e.enrollment_id for e in enrollments] == ["enr_1", "enr_2"]
    assert await store.list_by_child(session, "nobody") == []


async def test_stale_version_is_rejected(session):
    original = await store.save(session, make_enrollment(staff_id="A"))

    first = change_staff(original, selection("B"), "staff_resigned", now=DAY0 + timedelta(days=1))
    second = change_staff(original, selection("C"), "parent_request", now=DAY0 + timedelta(days=1))

    await store.save(session, first.enrollment, expected_version=original.version)
    with pytest.raises(ConflictError):
        await store.save(session, second.enrollment, expected_version=original.version)

    loaded = await store.get_by_id(session, "enr_1")
    assert loaded.current_staff.staff_id == "B"
    assert len(loaded.staff_history) == 1


async def test_conditional_save_of_missing_record(session):
    with pytest.raises(NotFoundError):
        await store.save(session, make_enrollment(enrollment_id="ghost"), expected_version=1)


async def test_unconditional_save_is_an_upsert(session):
    await store.save(session, make_enrollment())
    inactive = deactivate(make_enrollment(), "Goals Achieved", now=DAY0 + timedelta(days=2)).enrollment

    saved = await store.save(session, inactive)
    saved_again = await store.save(session, inactive)

    assert saved.version == 2
    assert saved_again.version == 3
    loaded = await store.get_by_id(session, "enr_1")
    assert loaded.status == EnrollmentStatus.inactive
    assert loaded.current_staff is None
    assert len(loaded.staff_history) == 1


async def test_database_failure_surfaces_as_persistence_error(session, engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    with pytest.raises(PersistenceError):
        await store.save(session, make_enrollment())
