"""Client SDK configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Device-side settings, read from ``FIELDSYNC_*`` environment variables."""

    # Remote API (10.0.2.2 is the host machine seen from an Android emulator)
    API_BASE_URL: str = "http://10.0.2.2:4000/api"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Durable on-device key/value store
    KV_DATABASE_URL: str = "sqlite+pysqlite:///fieldsync_kv.db"

    model_config = SettingsConfigDict(env_prefix="FIELDSYNC_", env_file=".env", extra="ignore")

    @property
    def base_url(self) -> str:
        """API base URL without trailing slashes."""
        return self.API_BASE_URL.strip().rstrip("/")
