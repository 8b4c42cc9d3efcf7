from pydantic_settings import BaseSettings
from dotenv import load_dotenv


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "DPP Quality Ledger API"
    debug: bool = False
    database_url: str = "sqlite:///./dpp_ledger.db"
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    access_token_expire_minutes: int = 60 * 12
    allowed_hosts: str = ""
    public_url: str = "http://localhost:8000"

    # Ledger behaviour
    record_key_prefix: str = "DPP-"
    quality_alert_topic: str = "QualityAlert"
    event_timezone: str = "UTC"
    log_file: str = "logs/application.log"


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")
