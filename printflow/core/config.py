from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ADMIN_API_KEY = "pf-admin-dev-key"
DEFAULT_SUPERADMIN_API_KEY = "pf-superadmin-dev-key"
DEFAULT_OPERATIONS_API_KEY = "pf-operations-dev-key"
DEFAULT_CLIENT_API_KEYS = {
    "pf-client-c1-dev-key": "c1",
    "pf-client-c2-dev-key": "c2",
    "pf-client-c3-dev-key": "c3",
}
DEFAULT_SUPERVISOR_KEYS = ["pf-supervisor-dev-key"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="PF_", extra="ignore")

    app_name: str = "Printflow Order Pipeline"
    env: str = "dev"
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./printflow.db"
    store_name: str = "printflow-storage"
    load_snapshot_on_startup: bool = True

    # Plant capacity in CLP committed to InProduction orders.
    plant_max_capacity: int = Field(default=5_000_000, gt=0)
    express_override_threshold: int = Field(default=80, ge=0, le=100)
    saturation_threshold: int = Field(default=90, ge=0, le=100)

    plate_width_cm: float = Field(default=122.0, gt=0)
    plate_height_cm: float = Field(default=244.0, gt=0)

    economic_lead_days: int = Field(default=10, ge=0)
    standard_lead_days: int = Field(default=7, ge=0)
    express_lead_days: int = Field(default=3, ge=0)

    auth_enabled: bool = True
    admin_api_key: str = DEFAULT_ADMIN_API_KEY
    superadmin_api_key: str = DEFAULT_SUPERADMIN_API_KEY
    operations_api_key: str = DEFAULT_OPERATIONS_API_KEY
    client_api_keys: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CLIENT_API_KEYS),
        description="api key -> linked customer id",
    )
    admin_user_id: str = "admin1"
    superadmin_user_id: str = "superadmin1"
    operations_user_id: str = "ops1"

    supervisor_keys: list[str] = Field(default_factory=lambda: list(DEFAULT_SUPERVISOR_KEYS))

    # AI draft backend: gemini_http | local
    draft_backend: str = "local"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_key: str | None = None
    gemini_timeout_seconds: int = 30

    def model_post_init(self, __context) -> None:
        if self.saturation_threshold < self.express_override_threshold:
            raise ValueError("saturation_threshold must not be below express_override_threshold")

        if self.env.lower() == "dev":
            return

        insecure_items: list[str] = []
        if self.admin_api_key == DEFAULT_ADMIN_API_KEY:
            insecure_items.append("PF_ADMIN_API_KEY")
        if self.superadmin_api_key == DEFAULT_SUPERADMIN_API_KEY:
            insecure_items.append("PF_SUPERADMIN_API_KEY")
        if self.operations_api_key == DEFAULT_OPERATIONS_API_KEY:
            insecure_items.append("PF_OPERATIONS_API_KEY")
        if any(key in DEFAULT_CLIENT_API_KEYS for key in self.client_api_keys):
            insecure_items.append("PF_CLIENT_API_KEYS")
        if any(key in DEFAULT_SUPERVISOR_KEYS for key in self.supervisor_keys):
            insecure_items.append("PF_SUPERVISOR_KEYS")

        if insecure_items:
            raise ValueError(
                "insecure default secrets are not allowed outside dev mode; set env vars: "
                + ", ".join(sorted(insecure_items))
            )

    def tier_lead_days(self) -> dict[str, int]:
        return {
            "Economic": self.economic_lead_days,
            "Standard": self.standard_lead_days,
            "Express": self.express_lead_days,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
