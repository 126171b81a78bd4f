import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DB_PATH = Path("data/stormcrew.db")


def load_env() -> None:
    """Load .env from the working directory if present.

    Values already set in the process environment win.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


@dataclass(frozen=True)
class Settings:
    db_path: Path = DEFAULT_DB_PATH
    log_level: str = "INFO"
    log_dir: Optional[Path] = None  # file logging only when set

    @classmethod
    def from_env(cls) -> "Settings":
        log_dir = os.getenv("STORMCREW_LOG_DIR")
        return cls(
            db_path=Path(os.getenv("STORMCREW_DB", str(DEFAULT_DB_PATH))),
            log_level=os.getenv("STORMCREW_LOG_LEVEL", "INFO").upper(),
            log_dir=Path(log_dir) if log_dir else None,
        )
