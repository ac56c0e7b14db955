"""Service configuration loaded from the environment."""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration. Every field maps to one environment variable."""

    # Generation service
    mistral_api_key: Optional[str] = Field(default=None, validation_alias="MISTRAL_API_KEY")
    mistral_api_url: str = Field(
        default="https://api.mistral.ai/v1/chat/completions",
        validation_alias="MISTRAL_API_URL",
    )
    mistral_model: str = Field(default="mistral-large-latest", validation_alias="MISTRAL_MODEL")
    generation_timeout: float = Field(default=180.0, validation_alias="GENERATION_TIMEOUT")

    # Repository host
    github_token: Optional[str] = Field(default=None, validation_alias="GITHUB_TOKEN")
    github_username: Optional[str] = Field(default=None, validation_alias="GITHUB_USERNAME")
    github_api_url: str = Field(default="https://api.github.com", validation_alias="GITHUB_API_URL")

    # Toolchain
    workspace_dir: str = Field(default="./flutter_projects", validation_alias="WORKSPACE_DIR")
    flutter_bin: str = Field(default="flutter", validation_alias="FLUTTER_BIN")
    git_bin: str = Field(default="git", validation_alias="GIT_BIN")
    command_timeout: float = Field(default=300.0, validation_alias="COMMAND_TIMEOUT")
    max_validation_attempts: int = Field(default=3, validation_alias="MAX_VALIDATION_ATTEMPTS")
    debug_build_check: bool = Field(default=True, validation_alias="DEBUG_BUILD_CHECK")

    # Notification and cleanup
    notify_timeout: float = Field(default=10.0, validation_alias="NOTIFY_TIMEOUT")
    project_grace_period: float = Field(default=300.0, validation_alias="PROJECT_GRACE_PERIOD")
    bundle_grace_period: float = Field(default=3600.0, validation_alias="BUNDLE_GRACE_PERIOD")

    # Scheduling and storage
    max_concurrent_jobs: int = Field(default=2, ge=1, validation_alias="MAX_CONCURRENT_JOBS")
    job_store: str = Field(default="memory", pattern="^(memory|json)$", validation_alias="JOB_STORE")
    job_store_path: str = Field(default=".apkforge/jobs.json", validation_alias="JOB_STORE_PATH")

    # Server
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3000, validation_alias="PORT")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    def missing_configuration(self) -> List[str]:
        """Names of required credentials that are not set."""
        required = {
            "MISTRAL_API_KEY": self.mistral_api_key,
            "GITHUB_TOKEN": self.github_token,
            "GITHUB_USERNAME": self.github_username,
        }
        return [name for name, value in required.items() if not value]

    @property
    def secrets(self) -> List[str]:
        return [value for value in (self.mistral_api_key, self.github_token) if value]
