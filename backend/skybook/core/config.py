from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Optional
from pathlib import Path
import json

_DEV_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]
_LOOPBACK_HOSTS = ("http://localhost:", "http://127.0.0.1:")


class Settings(BaseSettings):
    app_name: str = Field(default="SkyBook API", alias="APP_NAME")
    env: str = Field(default="dev", alias="ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    # Shared with the identity service that issues the access tokens
    secret_key: str = Field(default="devsecret", alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    cors_origins_raw: Optional[str] = Field(default=None, alias="CORS_ORIGINS", description="Comma or space separated list of allowed CORS origins")

    refund_cutoff_hours: int = Field(default=24, alias="REFUND_CUTOFF_HOURS")
    generic_cancel_error: str = Field(default="Failed to cancel booking", alias="GENERIC_CANCEL_ERROR")
    reminder_lead_hours_raw: Optional[str] = Field(default=None, alias="REMINDER_LEAD_HOURS", description="e.g. '24,2'")
    reminder_key_prefix: str = Field(default="flight-reminder-", alias="REMINDER_KEY_PREFIX")
    notifications_enabled: bool = Field(default=True, alias="NOTIFICATIONS_ENABLED")

    class Config:
        # backend/.env, whatever the CWD
        env_file = str(Path(__file__).resolve().parents[2] / ".env")
        case_sensitive = False

    @staticmethod
    def _parse_list(v: Optional[str]) -> List[str]:
        """Accept a JSON array or a comma/space separated string."""
        s = (v or "").strip()
        if s.startswith("[") and s.endswith("]"):
            try:
                loaded = json.loads(s)
            except ValueError:
                loaded = None
            if isinstance(loaded, list):
                return [str(e).strip() for e in loaded if str(e).strip()]
        return [e for e in s.replace(" ", ",").split(",") if e]

    @property
    def reminder_lead_hours(self) -> List[int]:
        hours = [int(h) for h in self._parse_list(self.reminder_lead_hours_raw) if h.isdigit() and int(h) > 0]
        return hours or [24, 2]

    @property
    def cors_origins(self) -> List[str]:
        items = self._parse_list(self.cors_origins_raw)
        if not items:
            return list(_DEV_ORIGINS)
        origins = set(items)
        # localhost and 127.0.0.1 are interchangeable in the browser during development
        for origin in items:
            for host in _LOOPBACK_HOSTS:
                if origin.startswith(host):
                    port = origin[len(host):]
                    origins.update(h + port for h in _LOOPBACK_HOSTS)
        return sorted(origins)

settings = Settings()  # type: ignore
