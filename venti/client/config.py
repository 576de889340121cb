# client/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    API_URL: str = "http://localhost:8000"
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    NOTICE_TTL_SECONDS: float = 3.0
    MAX_PROGRAM_DAY: int = 30

    model_config = SettingsConfigDict(env_prefix="VENTI_", env_file=".env", extra="ignore")


client_settings = ClientSettings()
