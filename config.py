import logging
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "3000"))

    # Database settings
    db_file: str = os.getenv("READING_LOG_DB_FILE", "reading_log.db")

    # Cover service settings
    covers_base_url: str = os.getenv("COVERS_BASE_URL", "https://covers.openlibrary.org/b/isbn")
    covers_timeout: float = float(os.getenv("COVERS_TIMEOUT", "10"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Reading Log")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once; later calls are no-ops."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
