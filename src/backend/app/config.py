from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Maria Faz Import"
    DEBUG: bool = True

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5000"]

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    # OCR
    TESSERACT_CMD: str = "/usr/bin/tesseract"

    # Storage
    DOCUMENT_BUCKET: str = "reservation-documents"
    MAX_UPLOAD_MB: int = 10

    # AI providers (tried in AI_PROVIDER_ORDER, keys left empty are skipped)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    MISTRAL_API_KEY: str = ""
    MISTRAL_MODEL: str = "mistral-large-latest"
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_MODEL: str = "mistralai/mistral-large"
    AI_PROVIDER_ORDER: List[str] = ["gemini", "mistral", "openrouter"]
    AI_REQUEST_TIMEOUT: float = 30.0
    AI_MAX_RETRIES: int = 3
    AI_BACKOFF_BASE: float = 1.0
    AI_BACKOFF_MAX: float = 30.0

    # Matching
    MATCH_MIN_SCORE: int = 60
    CONFIDENT_MATCH_SCORE: int = 80
    SUGGESTION_LIMIT: int = 3

    # Plausibility
    MAX_STAY_NIGHTS: int = 30
    MAX_RESERVATION_AMOUNT: str = "50000"

    # Batch import
    IMPORT_MAX_WORKERS: int = 4

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
