import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_key: str = os.getenv("API_KEY", "super-secret-key")

    # Storage settings
    # 'local' keeps whole JSON collections in a key-value directory,
    # 'sql' keeps rows in a sqlite database.
    storage_backend: str = os.getenv("STORAGE_BACKEND", "local").lower()
    data_dir: str = os.getenv("MARKET_DATA_DIR", ".market-data")
    database_file: str = os.getenv("MARKET_DB_FILE", "market.db")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Textbook Marketplace")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
