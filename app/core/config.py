from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from pathlib import Path
import os


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "Provenance Ledger API"
    debug: bool = False
    database_url: str = "sqlite:///./provenance.db"
    create_schema: bool = True
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    access_token_expire_minutes: int = 15
    refresh_token_expire_minutes: int = 60 * 24 * 7
    allowed_hosts: str = ""
    static_dir: Path = Path(__file__).parent.parent.parent / "static"
    public_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"

    # Transient storage failures are retried by the API layer, never by the ledger
    storage_retry_attempts: int = 3
    storage_retry_backoff_seconds: float = 0.05

    admin_email: str = ""
    admin_password: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""

    log_file: str = "logs/application.log"
    log_level: str = "INFO"


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")


os.makedirs(settings.static_dir, exist_ok=True)
