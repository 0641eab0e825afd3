from pydantic_settings import BaseSettings
from functools import lru_cache
from app.utils.time_calculations import PLTConfig


class ConfigurationError(Exception):
    """Missing or invalid settings that make a sync impossible."""


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./billing.db"

    # ClickUp
    clickup_personal_token: str = ""
    clickup_team_id: str = ""
    clickup_api_base_url: str = "https://api.clickup.com/api/v2"
    clickup_request_timeout_seconds: int = 30
    # Look-back window for each sync run, in days
    clickup_sync_days: int = 90

    # Scheduled (auto) sync - cron fields passed to APScheduler's CronTrigger
    sync_cron_enabled: bool = True
    sync_cron_minute: str = "0"
    sync_cron_hour: str = "*"

    # Project lead time (PLT)
    # Percentage of weekly allocated hours, e.g. 25 for 25%
    plt_default_percentage: float = 25
    plt_default_hours_per_day: float = 2
    plt_use_percentage: bool = True
    plt_progressive_enabled: bool = True

    # Application
    app_env: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def plt_config(self) -> PLTConfig:
        return PLTConfig(
            project_lead_percentage=self.plt_default_percentage / 100,
            hours_per_day=self.plt_default_hours_per_day,
            use_percentage=self.plt_use_percentage,
            enabled=self.plt_progressive_enabled,
        )

    def validate_sync_settings(self) -> None:
        missing = [
            name for name in ("clickup_personal_token", "clickup_team_id", "database_url")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
