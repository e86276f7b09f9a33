from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


@dataclass(frozen=True)
class BallotConfig:
    backend: str = os.getenv("BALLOT_BACKEND", "memory")
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_KEY", "")
    session_secret: str = os.getenv("SESSION_SECRET", "ballot-secret-change-in-production")
    log_level: str = os.getenv("BALLOT_LOG_LEVEL", "INFO")

    max_selection: int = 15
    score_min: int = 1
    score_max: int = 5

    profiles_table: str = "users_table_round_2"
    candidates_table: str = "restaurants_table"
    selections_table: str = "user_selection_table_round_2"
    submissions_table: str = "ratings_table_round_2"

    catalog_path: Path = Path(__file__).resolve().parent / "data" / "restaurants.csv"


DEFAULT_CONFIG = BallotConfig()
