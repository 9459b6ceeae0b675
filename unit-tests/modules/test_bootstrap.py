"""
Tests for app/bootstrap.py
"""

import pytest
from unittest.mock import patch, MagicMock
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
import unit_test_utils
import bootstrap
import database
import utils


@pytest.fixture(autouse=True)
def store():
    return unit_test_utils.fresh_store()


def test_admin_created_once(store):
    assert bootstrap.setup_database() is True
    assert store.has_admin()
    assert bootstrap.setup_database() is False
    assert len(store.list_users()) == 1


def test_admin_credentials_work(store):
    admin_id, admin_key = bootstrap.create_admin_user(store)
    assert utils.validate_api_key(admin_key) == (admin_id, "admin", True)
    assert store.list_agendas(admin_id) == []


def test_check_db_is_setup():
    cursor = MagicMock()
    cursor.fetchall.side_effect = [[(database.MYSQL_DATABASE,)], [("users",), ("agendas",)]]
    with patch("database.get_cursor", return_value=cursor), patch("database.get_connection"):
        assert bootstrap.check_db_is_setup() is False

    cursor.fetchall.side_effect = [[(database.MYSQL_DATABASE,)], [("users",), ("agendas",), ("events",)]]
    with patch("database.get_cursor", return_value=cursor), patch("database.get_connection"):
        assert bootstrap.check_db_is_setup() is True


def test_mysql_schema_created_when_missing(store):
    with patch("database.get_store_backend", return_value="mysql"), \
            patch("bootstrap.check_db_is_setup", return_value=False), \
            patch("bootstrap.create_db_and_scheme") as create_schema:
        assert bootstrap.setup_database() is True
    create_schema.assert_called_once()


def test_create_db_and_scheme_runs_each_table_separately():
    cursor = MagicMock()
    with patch("database.get_cursor", return_value=cursor), patch("database.get_connection") as connection:
        bootstrap.create_db_and_scheme()
    statements = [call[0][0] for call in cursor.execute.call_args_list]
    assert sum("CREATE TABLE" in s for s in statements) == 3
    connection.return_value.commit.assert_called_once()
