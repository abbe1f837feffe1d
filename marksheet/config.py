from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = ""
    environment: str = "dev"
    # Create tables on startup (SQLite / local development)
    create_tables: bool = False
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    # Grading settings
    default_passing_percentage: float = 35.0  # used when neither subject nor exam sets passing marks
    # Analytics settings
    insight_threshold: float = 60.0
    urgent_insight_threshold: float = 40.0
    trend_threshold: float = 5.0  # percentage points between the last two exams
    # Upload settings
    upload_max_size: int = 5 * 1024 * 1024  # 5MB


settings = Settings()  # type: ignore
