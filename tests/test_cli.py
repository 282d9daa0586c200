"""
Tests for the click CLI using CliRunner with the database and service
patched.
"""

import pytest
from unittest.mock import Mock, patch

from click.testing import CliRunner

from mailbridge import main
from mailbridge.storage.emails import EmailRepository
from mailbridge.storage.users import UserRepository
from tests.factories import DatabaseTestFactory, GmailTestFactory


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_db(test_db):
    with patch.object(main, "_get_db", return_value=test_db), patch.object(main, "setup_logging"):
        yield test_db


def add_user(test_db, line_user_id, **kwargs):
    session = test_db.get_session()
    try:
        return DatabaseTestFactory.create_user(session, line_user_id=line_user_id, **kwargs)
    finally:
        session.close()


class TestUsersCommands:
    """Tests for user management commands."""

    def test_list_active_users(self, runner, cli_db):
        add_user(cli_db, "U-active")
        add_user(cli_db, "U-inactive", is_active=False)

        result = runner.invoke(main.cli, ["users", "list"])

        assert result.exit_code == 0
        assert "U-active" in result.output
        assert "U-inactive" not in result.output

    def test_list_all_users(self, runner, cli_db):
        add_user(cli_db, "U-active")
        add_user(cli_db, "U-inactive", is_active=False)

        result = runner.invoke(main.cli, ["users", "list", "--all"])

        assert "U-inactive" in result.output

    def test_no_users(self, runner, cli_db):
        result = runner.invoke(main.cli, ["users", "list"])

        assert "No users found" in result.output

    def test_deactivate(self, runner, cli_db):
        add_user(cli_db, "U1")

        result = runner.invoke(main.cli, ["users", "deactivate", "U1"])

        assert result.exit_code == 0
        assert UserRepository(cli_db).get_all_active_users() == []


class TestEmailsCommands:
    """Tests for tracked email commands."""

    def test_list_and_reset(self, runner, cli_db):
        user = add_user(cli_db, "U1")
        EmailRepository(cli_db).create_email(user.id, GmailTestFactory.create_message("m1", subject="Invoice"))

        listed = runner.invoke(main.cli, ["emails", "list", "U1"])
        reset = runner.invoke(main.cli, ["emails", "reset", "U1", "--yes"])

        assert "Invoice" in listed.output
        assert reset.exit_code == 0
        assert "Deleted 1" in reset.output
        assert EmailRepository(cli_db).get_emails_by_user_id(user.id) == []

    def test_unknown_user(self, runner, cli_db):
        result = runner.invoke(main.cli, ["emails", "list", "nobody"])

        assert result.exit_code == 1


class TestDbCommands:
    def test_init_and_status(self, runner, cli_db):
        add_user(cli_db, "U1")

        init = runner.invoke(main.cli, ["db", "init"])
        status = runner.invoke(main.cli, ["db", "status"])

        assert init.exit_code == 0
        assert status.exit_code == 0
        assert "Users: 1 (1 active)" in status.output


class TestServiceCommands:
    """Tests for commands that drive the NotificationService."""

    def test_notify(self, runner):
        service = Mock()
        with patch.object(main, "_get_service", return_value=service), patch.object(main, "setup_logging"):
            result = runner.invoke(main.cli, ["notify"])

        assert result.exit_code == 0
        service.process_push_notification.assert_called_once_with()

    def test_notify_failure_exits_nonzero(self, runner):
        service = Mock()
        service.process_push_notification.side_effect = Exception("db down")
        with patch.object(main, "_get_service", return_value=service), patch.object(main, "setup_logging"):
            result = runner.invoke(main.cli, ["notify"])

        assert result.exit_code == 1

    def test_watch_renew(self, runner):
        service = Mock()
        service.renew_watches.return_value = 3
        with patch.object(main, "_get_service", return_value=service), patch.object(main, "setup_logging"):
            result = runner.invoke(main.cli, ["watch", "renew"])

        assert result.exit_code == 0
        assert "Renewed 3" in result.output
