import asyncio
import logging

from sqlalchemy import select, func
from .config import ENVIRONMENT
from .database import async_session, db_manager, engine, Base
from .exceptions import PersistenceError, ConfigurationError

# Register tables on Base.metadata
from care_portal.enrollments.models import ServiceEnrollmentRecord
from care_portal.staff.models import StaffMember

logger = logging.getLogger(__name__)


async def init_database():
    """Create tables for enrollments and the staff directory"""
    try:
        logger.info("Starting database initialization...")

        await db_manager.check_connection()
        logger.info("✅ Database connection verified")

        await db_manager.create_tables()
        logger.info("✅ Database tables created/verified")

        logger.info("🎉 Database initialization completed successfully")

    except PersistenceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during database initialization: {e}")
        raise PersistenceError(f"Database initialization failed: {str(e)}")


async def verify_database_setup():
    """Report row counts of the enrollment tables"""
    try:
        async with async_session() as session:
            enrollments = await session.execute(
                select(func.count(ServiceEnrollmentRecord.enrollment_id))
            )
            staff = await session.execute(select(func.count(StaffMember.id)))

            logger.info(
                f"✅ Database verification passed: {enrollments.scalar()} enrollments, "
                f"{staff.scalar()} staff members"
            )
            return True

    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        raise PersistenceError(f"Database verification failed: {str(e)}")


async def reset_database():
    """Drop and recreate all tables (development/testing only)"""
    if ENVIRONMENT not in ["development", "dev", "test"]:
        raise ConfigurationError(
            "ENVIRONMENT",
            "Database reset is only allowed in development or test environments",
        )

    logger.warning("🚨 RESETTING DATABASE - ALL DATA WILL BE LOST!")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("✅ All tables dropped")

    await init_database()
    logger.info("✅ Database reset completed")


if __name__ == "__main__":
    import sys

    async def main():
        command = sys.argv[1] if len(sys.argv) > 1 else "init"

        if command == "init":
            await init_database()
        elif command == "verify":
            await verify_database_setup()
        elif command == "reset":
            await reset_database()
        else:
            print(f"Unknown command: {command}")
            print("Available commands: init, verify, reset")
            sys.exit(1)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Database initialization cancelled by user")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)
