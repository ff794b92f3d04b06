import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigError

# Prompt for the AI to generate a filename AND category
DEFAULT_PROMPT = """
Analyze the following content (from a doc or text).
Your task is to:
1.  Propose a concise, descriptive filename (5-10 words, no extension, use spaces).
2.  Propose a single, concise category name for a folder (e.g., "Resumes", "Recipes", "Projects", "Invoices").

Respond with ONLY text in the following two-line format:
FILENAME: Your Suggested Filename
CATEGORY: Your Suggested Category

Example response:
FILENAME: Quarterly Business Report Q4 2024
CATEGORY: Reports
"""

DEFAULT_DELAY_SECONDS = 5.0
DEFAULT_LEDGER = Path("_logs") / "moves.csv"


@dataclass
class Settings:
    api_key: str
    credentials_file: str
    source_folder_id: str
    destination_folder_id: str
    prompt: str = DEFAULT_PROMPT
    model: Optional[str] = None
    delay_seconds: float = DEFAULT_DELAY_SECONDS
    limit: int = 0
    time_budget: float = 0.0
    dry_run: bool = False
    ledger_path: Optional[Path] = DEFAULT_LEDGER


def load_prompt(path: Optional[str]) -> str:
    if not path:
        return DEFAULT_PROMPT
    try:
        text = Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read prompt file {path}: {e}") from e
    if not text.strip():
        raise ConfigError(f"Prompt file {path} is empty")
    return text


def build_settings(
    *,
    source: Optional[str] = None,
    dest: Optional[str] = None,
    credentials: Optional[str] = None,
    model: Optional[str] = None,
    prompt_file: Optional[str] = None,
    delay: float = DEFAULT_DELAY_SECONDS,
    limit: int = 0,
    time_budget: float = 0.0,
    dry_run: bool = False,
    ledger: Optional[str] = None,
    no_ledger: bool = False,
    environ=None,
) -> Settings:
    """Merge CLI values over environment variables."""
    env = os.environ if environ is None else environ
    api_key = env.get("GEMINI_API_KEY")
    if not api_key:
        raise ConfigError("GEMINI_API_KEY environment variable not set.")
    credentials = credentials or env.get("GOOGLE_APPLICATION_CREDENTIALS")
    if not credentials:
        raise ConfigError("No service account file: pass --credentials or set GOOGLE_APPLICATION_CREDENTIALS.")
    source = source or env.get("DRIVE_SOURCE_FOLDER_ID")
    if not source:
        raise ConfigError("No source folder: pass it as an argument or set DRIVE_SOURCE_FOLDER_ID.")
    dest = dest or env.get("DRIVE_DESTINATION_FOLDER_ID") or source
    if delay < 0 or limit < 0 or time_budget < 0:
        raise ConfigError("--delay, --limit and --time-budget must not be negative.")
    if no_ledger:
        ledger_path = None
    else:
        ledger_path = Path(ledger).expanduser() if ledger else DEFAULT_LEDGER
    return Settings(
        api_key=api_key,
        credentials_file=credentials,
        source_folder_id=source,
        destination_folder_id=dest,
        prompt=load_prompt(prompt_file),
        model=model or env.get("GEMINI_MODEL") or None,
        delay_seconds=delay,
        limit=limit,
        time_budget=time_budget,
        dry_run=dry_run,
        ledger_path=ledger_path,
    )
