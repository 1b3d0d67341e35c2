from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool
import manage_db


def _engine():
    return create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


def test_create_and_drop_tables():
    engine = _engine()

    created = manage_db.create_tables(bind=engine)
    assert {"users", "mood_entries", "subscriptions", "analytics_events"} <= set(created)
    assert "mood_entries" in inspect(engine).get_table_names()

    manage_db.drop_tables(bind=engine)
    assert inspect(engine).get_table_names() == []


def test_drop_requires_confirmation(mocker):
    mock_drop = mocker.patch("manage_db.drop_tables")
    assert manage_db.main(["drop"]) == 1
    mock_drop.assert_not_called()


def test_create_command(mocker):
    mock_create = mocker.patch("manage_db.create_tables", return_value=["users"])
    assert manage_db.main(["create"]) == 0
    mock_create.assert_called_once_with()
