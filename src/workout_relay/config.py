import tempfile
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    outbox_dir: Path = Path(tempfile.gettempdir()) / "workout_relay" / "outbox"
    inbox_dir: Path = Path.home() / ".workout_relay" / "inbox"
    inbox_reload_seconds: int = 60  # 0 disables the background refresh job
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
