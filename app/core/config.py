import os
import tempfile
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "Customer Intake"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # Incoming documents are written here until they are pushed to Drive
    UPLOAD_DIR: str = os.path.join(tempfile.gettempdir(), "customer-intake")
    MAX_UPLOAD_SIZE_MB: int = 1024

    # Google service account: either the raw JSON or a path to it
    GOOGLE_CREDENTIALS: str = ""
    GOOGLE_CREDENTIALS_FILE: str = ""

    SHEET_ID: str = ""
    SHEET_RANGE: str = "A:Q"
    DRIVE_FOLDER_ID: str = ""

    TIMEZONE: str = "Asia/Riyadh"

settings = Settings()

# Ensure directories exist
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
