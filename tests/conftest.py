import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENROLLMENT_CACHE_BACKEND"] = "memory"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from care_portal.core.cache import MemoryCacheBackend, get_cache_backend
from care_portal.core.database import Base, get_session
from care_portal.enrollments.crud import store
from care_portal.enrollments.models import StaffRole
from care_portal.enrollments.services.enrollment_service import EnrollmentService
from care_portal.enrollments.services.projections import EnrollmentCache
from care_portal.staff.crud.directory import StaffDirectory
from care_portal.staff.models import StaffMember

from helpers import FixedClock, make_enrollment


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache_backend():
    return MemoryCacheBackend()


@pytest.fixture
def enrollment_cache(cache_backend):
    return EnrollmentCache(cache_backend, ttl=0)


@pytest.fixture
def clock():
    return FixedClock()


@pytest_asyncio.fixture
async def staff_members(session):
    members = [
        StaffMember(id="th_1", first_name="Tara", last_name="Hale", role=StaffRole.therapist, specializations=[]),
        StaffMember(
            id="th_2",
            first_name="Owen",
            last_name="Price",
            role=StaffRole.therapist,
            specializations=["Speech Therapy"],
        ),
        StaffMember(
            id="th_3",
            first_name="Nina",
            last_name="Shaw",
            role=StaffRole.therapist,
            specializations=["Occupational Therapy"],
        ),
        StaffMember(
            id="th_old",
            first_name="Ivan",
            last_name="Dorn",
            role=StaffRole.therapist,
            specializations=[],
            is_active=False,
        ),
        StaffMember(id="te_1", first_name="Lena", last_name="Moss", role=StaffRole.teacher, specializations=[]),
        StaffMember(id="te_2", first_name="Carl", last_name="Ames", role=StaffRole.teacher, specializations=["Art"]),
    ]
    session.add_all(members)
    await session.commit()
    return members


@pytest_asyncio.fixture
async def stored_enrollment(session, staff_members):
    return await store.save(session, make_enrollment())


@pytest.fixture
def service(session, enrollment_cache, clock):
    return EnrollmentService(session, enrollment_cache, StaffDirectory(session), clock=clock)


@pytest_asyncio.fixture
async def client(session_factory, cache_backend):
    from care_portal.main import app

    async def override_get_session():
        async with session_factory() as session:
            yield session

    async def override_get_cache_backend():
        return cache_backend

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_cache_backend] = override_get_cache_backend

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
