"""Tests for Settings configuration model."""

from pathlib import Path

from flowdeploy.config import Settings


class TestDefaults:
    def test_paths(self):
        s = Settings()
        assert s.deployments_path == Path("data/deployments.json")
        assert s.workflows_path == Path("data/workflows.json")

    def test_scheduler(self):
        s = Settings()
        assert s.scheduler_timezone == "UTC"
        assert s.scheduler_max_instances == 1

    def test_api_port(self):
        assert Settings().api_port == 4000


class TestPipedreamConfigured:
    def test_all_set(self):
        s = Settings(
            pipedream_client_id="id",
            pipedream_client_secret="secret",
            pipedream_project_id="proj_1",
        )
        assert s.pipedream_configured is True

    def test_missing_project(self):
        s = Settings(pipedream_client_id="id", pipedream_client_secret="secret")
        assert s.pipedream_configured is False

    def test_empty(self):
        assert Settings().pipedream_configured is False
