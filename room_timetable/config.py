# room_timetable/config.py
from datetime import time
from typing import Literal

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: float = 60  # supports decimal durations

    SMTP_EMAIL: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    NOTIFICATIONS_ENABLED: bool = True

    # All booking timestamps are naive wall-clock times in this zone
    INSTITUTION_TIMEZONE: str = "Asia/Kolkata"
    OPENING_TIME: time = time(7, 30)
    CLOSING_TIME: time = time(22, 30)
    ALLOW_WEEKEND_BOOKINGS: bool = True

    UNMATCHED_TEMPLATE_OWNER_POLICY: Literal["skip", "assign_to_creator", "assign_to_admin"] = "assign_to_admin"
    MATERIALIZE_LOOKAHEAD_WEEKS: int = 2

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
