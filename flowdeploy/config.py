"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """flowdeploy configuration. All values come from environment variables."""

    # Persistence
    deployments_path: Path = Field(default=Path("data/deployments.json"))
    workflows_path: Path = Field(default=Path("data/workflows.json"))

    # HTTP API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=4000)

    # Scheduler
    scheduler_timezone: str = Field(default="UTC")
    scheduler_max_instances: int = Field(default=1)

    # Pipedream Connect (automation platform)
    pipedream_client_id: str = Field(default="")
    pipedream_client_secret: str = Field(default="")
    pipedream_project_id: str = Field(default="")
    pipedream_environment: str = Field(default="development")
    pipedream_api_url: str = Field(default="https://api.pipedream.com/v1")

    # Built-in workflows
    slack_channel: str = Field(default="#testing_workflow")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def pipedream_configured(self) -> bool:
        """True when client credentials and a project are all set."""
        return bool(
            self.pipedream_client_id
            and self.pipedream_client_secret
            and self.pipedream_project_id
        )


settings = Settings()
