from pydantic_settings import BaseSettings
from pydantic import SecretStr
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    app_name: str = "Campus Quiz Engine"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Supabase Configuration
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_anon_key: SecretStr = os.getenv("SUPABASE_ANON_KEY", "")
    supabase_service_role_key: SecretStr = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # All instants are stored and compared in this civil timezone (UTC+5:30)
    timezone_name: str = os.getenv("QUIZ_TIMEZONE", "Asia/Kolkata")
    default_login_window_seconds: int = int(os.getenv("DEFAULT_LOGIN_WINDOW_SECONDS", 600))

    # Attempt engine
    autosave_retries: int = int(os.getenv("AUTOSAVE_RETRIES", 2))
    autosave_warning_threshold: int = int(os.getenv("AUTOSAVE_WARNING_THRESHOLD", 3))
    submit_retries: int = int(os.getenv("SUBMIT_RETRIES", 2))
    retry_backoff_seconds: float = float(os.getenv("RETRY_BACKOFF_SECONDS", 0.1))
    countdown_tick_seconds: float = float(os.getenv("COUNTDOWN_TICK_SECONDS", 1.0))
    leaderboard_limit: int = int(os.getenv("LEADERBOARD_LIMIT", 50))

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

settings = Settings()
