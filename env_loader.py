"""
Environment variable loader for the task sync server.
Handles loading the Smartsheet token and sheet id from .env files or environment.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

from config import DEFAULT_KEY_COLUMN, SMARTSHEET_API_BASE
from lib.errors import ConfigurationError

ENV_FILE_NAMES = (".env.local", ".env")


def _find_env_files() -> list[Path]:
    """Find .env.local / .env (current dir and up to 2 parent dirs), nearest first."""
    found: list[Path] = []
    current = Path(__file__).parent
    for _ in range(3):
        for name in ENV_FILE_NAMES:
            env_path = current / name
            if env_path.exists():
                found.append(env_path)
        current = current.parent
    return found


# Earlier files win: load_dotenv never overrides a variable that is already set
for _env_file in _find_env_files():
    load_dotenv(_env_file)


def _required(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} is not set. Add it to the environment or .env.local")
    return value


def get_api_token() -> str:
    """
    Get the Smartsheet API access token.

    Raises:
        ConfigurationError: If SMARTSHEET_API_TOKEN is missing or blank
    """
    return _required("SMARTSHEET_API_TOKEN")


def get_sheet_id() -> str:
    """
    Get the tracker sheet id.

    Raises:
        ConfigurationError: If SMARTSHEET_SHEET_ID is missing or blank
    """
    return _required("SMARTSHEET_SHEET_ID")


def get_api_base() -> str:
    """Get the Smartsheet API base URL."""
    return os.environ.get("SMARTSHEET_API_BASE") or SMARTSHEET_API_BASE


def get_key_column() -> str:
    """Get the title of the key column."""
    return os.environ.get("SMARTSHEET_KEY_COLUMN") or DEFAULT_KEY_COLUMN


def get_port() -> int:
    """Get server port from environment."""
    return int(os.environ.get("PORT", "8080"))
