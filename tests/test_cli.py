"""Unit tests for the PyMonaca CLI commands."""

import json
from unittest.mock import AsyncMock, Mock, patch

import pytest
from click.testing import CliRunner

from pymonaca.build import BuildResult
from pymonaca.cli import main
from pymonaca.exceptions import (
    MonacaAPIError,
    MonacaAuthenticationError,
    MonacaBuildTimeoutError,
    MonacaTransferError,
)
from pymonaca.local_properties import get_project_id, set_project_id
from pymonaca.sync import SyncReport, TransferDirection, TransferProgress, TransferTask


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def mock_client():
    """Patch MonacaClient with an async context manager mock."""
    with patch("pymonaca.cli.MonacaClient") as mock_client_class:
        client = AsyncMock()
        client.__aenter__.return_value = client
        client.__aexit__.return_value = None
        client.logout = Mock()
        mock_client_class.return_value = client
        yield client


@pytest.fixture
def mock_engine():
    """Patch SyncEngine."""
    with patch("pymonaca.cli.SyncEngine") as mock_engine_class:
        engine = Mock()
        engine.upload_project = AsyncMock()
        engine.download_project = AsyncMock()
        engine.clone_project = AsyncMock()
        mock_engine_class.return_value = engine
        yield engine


def _report(direction, *paths, dry_run=False):
    tasks = [TransferTask(path, direction) for path in paths]
    report = SyncReport("p1", direction, tasks)
    if not dry_run:
        report.batch = Mock()
    return report


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep config and session files inside the test directory."""
    monkeypatch.setenv("MONACA_CONFIG_FILE", str(tmp_path / "monaca_config.json"))
    monkeypatch.setenv("MONACA_USER_DATA_FILE", str(tmp_path / "monaca.json"))


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        """Test main help shows all commands."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "PyMonaca" in result.output
        for command in ("login", "upload", "download", "clone", "build", "config"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestLoginCommand:
    """Tests for login and logout."""

    def test_login_success(self, runner, mock_client):
        result = runner.invoke(
            main, ["login", "-e", "user@example.com", "-p", "secret"]
        )

        assert result.exit_code == 0
        mock_client.login.assert_awaited_once_with("user@example.com", "secret")
        assert "Logged in" in result.output

    def test_login_failure(self, runner, mock_client):
        mock_client.login.side_effect = MonacaAPIError("Invalid password", 400)

        result = runner.invoke(
            main, ["login", "-e", "user@example.com", "-p", "wrong"]
        )

        assert result.exit_code == 1
        assert "Invalid password" in result.output

    def test_logout(self, runner, mock_client):
        result = runner.invoke(main, ["logout"])
        assert result.exit_code == 0
        mock_client.logout.assert_called_once()


class TestProjectsCommand:
    """Tests for the projects command."""

    def test_projects_json(self, runner, mock_client):
        mock_client.get_projects.return_value = [
            {"projectId": "p1", "name": "My App"}
        ]

        result = runner.invoke(main, ["--json", "projects"])

        assert result.exit_code == 0
        mock_client.relogin.assert_awaited_once()
        assert json.loads(result.output) == [{"ID": "p1", "Name": "My App"}]

    def test_projects_requires_login(self, runner, mock_client):
        mock_client.relogin.side_effect = MonacaAuthenticationError(
            "No saved login. Run 'pymonaca login' first."
        )

        result = runner.invoke(main, ["projects"])

        assert result.exit_code == 1
        assert "No saved login" in result.output
        mock_client.get_projects.assert_not_awaited()


class TestCreateAndInfoCommands:
    """Tests for the create and info commands."""

    def test_create_json(self, runner, mock_client):
        mock_client.create_project.return_value = {"projectId": "p9", "name": "New"}

        result = runner.invoke(
            main, ["--json", "create", "New", "-d", "Demo", "-t", "minimum"]
        )

        assert result.exit_code == 0
        mock_client.create_project.assert_awaited_once_with("New", "Demo", "minimum")
        assert json.loads(result.output)["projectId"] == "p9"

    def test_create_failure(self, runner, mock_client):
        mock_client.create_project.side_effect = MonacaAPIError("Name taken", 400)

        result = runner.invoke(main, ["create", "New"])

        assert result.exit_code == 1
        assert "Name taken" in result.output

    def test_info_json(self, runner, tmp_path):
        set_project_id(tmp_path, "p3")
        (tmp_path / "config.xml").write_text(
            "<widget><name>Demo</name></widget>", encoding="utf-8"
        )

        result = runner.invoke(main, ["--json", "info", str(tmp_path)])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["name"] == "Demo"
        assert data["project_id"] == "p3"

    def test_info_unlinked(self, runner, tmp_path):
        result = runner.invoke(main, ["info", str(tmp_path)])
        assert result.exit_code == 1
        assert "not linked" in result.output


class TestLinkCommand:
    """Tests for the link command."""

    def test_link_writes_project_id(self, runner, tmp_path):
        result = runner.invoke(main, ["link", str(tmp_path), "p42"])
        assert result.exit_code == 0
        assert get_project_id(tmp_path) == "p42"


class TestUploadCommand:
    """Tests for the upload command."""

    def test_upload_success(self, runner, tmp_path, mock_client, mock_engine):
        mock_engine.upload_project.return_value = _report(
            TransferDirection.UPLOAD, "/www/index.html", "/config.xml"
        )

        result = runner.invoke(main, ["-q", "upload", str(tmp_path)])

        assert result.exit_code == 0
        mock_engine.upload_project.assert_awaited_once()
        assert mock_engine.upload_project.await_args.kwargs["dry_run"] is False

    def test_upload_dry_run_lists_files(
        self, runner, tmp_path, mock_client, mock_engine
    ):
        mock_engine.upload_project.return_value = _report(
            TransferDirection.UPLOAD, "/www/index.html", dry_run=True
        )

        result = runner.invoke(main, ["upload", str(tmp_path), "--dry-run"])

        assert result.exit_code == 0
        assert "/www/index.html" in result.output
        assert mock_engine.upload_project.await_args.kwargs["dry_run"] is True

    def test_upload_json(self, runner, tmp_path, mock_client, mock_engine):
        mock_engine.upload_project.return_value = _report(
            TransferDirection.UPLOAD, "/config.xml"
        )

        result = runner.invoke(main, ["--json", "upload", str(tmp_path)])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["direction"] == "upload"
        assert data["files"] == ["/config.xml"]

    def test_upload_failure_reports_partial_progress(
        self, runner, tmp_path, mock_client, mock_engine
    ):
        async def upload_project(project_dir, dry_run=False, progress_callback=None):
            error = MonacaTransferError("/config.xml", MonacaAPIError("Boom", 500))
            progress_callback(TransferProgress("/www/a.js", 1, 3))
            progress_callback(TransferProgress("/config.xml", 2, 3, error))
            progress_callback(TransferProgress("/www/b.js", 3, 3))
            raise error

        mock_engine.upload_project.side_effect = upload_project

        result = runner.invoke(main, ["--json", "upload", str(tmp_path)])

        assert result.exit_code == 1
        assert "Transfer of /config.xml failed" in result.output
        assert "2/3" in result.output

    def test_upload_jobs_option(self, runner, tmp_path, mock_client, mock_engine):
        mock_engine.upload_project.return_value = _report(TransferDirection.UPLOAD)

        with patch("pymonaca.cli.TransferCoordinator") as mock_coordinator:
            result = runner.invoke(main, ["-q", "upload", str(tmp_path), "-j", "4"])

        assert result.exit_code == 0
        mock_coordinator.assert_called_once_with(max_concurrency=4)


class TestDownloadAndCloneCommands:
    """Tests for the download and clone commands."""

    def test_download(self, runner, tmp_path, mock_client, mock_engine):
        mock_engine.download_project.return_value = _report(
            TransferDirection.DOWNLOAD, "/www/index.html"
        )

        result = runner.invoke(main, ["-q", "download", str(tmp_path)])

        assert result.exit_code == 0
        mock_engine.download_project.assert_awaited_once()

    def test_clone(self, runner, tmp_path, mock_client, mock_engine):
        mock_engine.clone_project.return_value = _report(
            TransferDirection.DOWNLOAD, "/www/index.html"
        )
        dest = tmp_path / "app"

        result = runner.invoke(main, ["-q", "clone", "p1", str(dest)])

        assert result.exit_code == 0
        args = mock_engine.clone_project.await_args
        assert args.args == ("p1", dest)


class TestBuildCommand:
    """Tests for the build command."""

    @pytest.fixture
    def mock_orchestrator(self):
        with patch("pymonaca.cli.BuildOrchestrator") as mock_class:
            orchestrator = Mock()
            orchestrator.run = AsyncMock(
                return_value=BuildResult("Q1", {"binary_url": "app.apk"})
            )
            mock_class.return_value = orchestrator
            yield orchestrator

    def test_build_without_upload(
        self, runner, tmp_path, mock_client, mock_engine, mock_orchestrator
    ):
        set_project_id(tmp_path, "p1")

        result = runner.invoke(
            main,
            ["--json", "build", str(tmp_path), "-p", "android", "--no-upload"],
        )

        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "queue_id": "Q1",
            "result": {"binary_url": "app.apk"},
        }
        mock_engine.upload_project.assert_not_awaited()
        project_id, request = mock_orchestrator.run.await_args.args
        assert project_id == "p1"
        assert request.platform == "android"
        assert request.to_form()["purpose"] == "debug"

    def test_build_uploads_first(
        self, runner, tmp_path, mock_client, mock_engine, mock_orchestrator
    ):
        mock_engine.upload_project.return_value = _report(
            TransferDirection.UPLOAD, "/www/index.html"
        )

        result = runner.invoke(
            main, ["-q", "--json", "build", str(tmp_path), "-p", "ios"]
        )

        assert result.exit_code == 0
        mock_engine.upload_project.assert_awaited_once()

    def test_build_timeout(
        self, runner, tmp_path, mock_client, mock_engine, mock_orchestrator
    ):
        set_project_id(tmp_path, "p1")
        mock_orchestrator.run.side_effect = MonacaBuildTimeoutError(
            "Build timed out after 80 status checks"
        )

        result = runner.invoke(
            main, ["--json", "build", str(tmp_path), "-p", "android", "--no-upload"]
        )

        assert result.exit_code == 1
        assert "timed out" in result.output


class TestConfigCommands:
    """Tests for the config command group."""

    def test_set_get_remove(self, runner):
        result = runner.invoke(main, ["config", "set", "http_proxy", "http://p:8080"])
        assert result.exit_code == 0

        result = runner.invoke(main, ["config", "get", "http_proxy"])
        assert result.exit_code == 0
        assert "http://p:8080" in result.output

        result = runner.invoke(main, ["config", "remove", "http_proxy"])
        assert result.exit_code == 0

        result = runner.invoke(main, ["--json", "config", "list"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {}
