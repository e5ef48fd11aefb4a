"""
Runtime settings, read from the environment.
A .env file next to the project root (or in the working directory) is
loaded first when present.
"""
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DATA_DIR = Path(__file__).parent / "data"
DEFAULT_CATALOG_PATH = DATA_DIR / "drugs.json"
DEFAULT_RULES_PATH = DATA_DIR / "rules.json"


@dataclass(frozen=True)
class Settings:
    catalog_path: Path
    rules_path: Path
    log_level: str = "INFO"


def load_settings() -> Settings:
    env_path = Path(__file__).parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    return Settings(
        catalog_path=Path(os.getenv("SUBSTITUTION_CATALOG_PATH", str(DEFAULT_CATALOG_PATH))),
        rules_path=Path(os.getenv("SUBSTITUTION_RULES_PATH", str(DEFAULT_RULES_PATH))),
        log_level=os.getenv("SUBSTITUTION_LOG_LEVEL", "INFO").upper(),
    )
