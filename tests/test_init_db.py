from care_portal.core import database, init_db


def test_init_db_uses_shared_manager():
    assert init_db.db_manager is database.db_manager
