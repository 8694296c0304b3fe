"""
LeakGuard Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Versioning ---
    CORE_VERSION: str = "1.0.0"
    PATTERN_LIBRARY_VERSION: str = "1.0.0"

    # --- Tier Classification ---
    TIER_HIGH_THRESHOLD: float = float(
        os.getenv("LEAKGUARD_TIER_HIGH_THRESHOLD", "0.8")
    )
    TIER_MEDIUM_THRESHOLD: float = float(
        os.getenv("LEAKGUARD_TIER_MEDIUM_THRESHOLD", "0.5")
    )

    # --- Provider Freshness ---
    # Used when a provider result carries no freshness policy of its own
    DEFAULT_MAX_AGE_MS: int = int(
        os.getenv("LEAKGUARD_DEFAULT_MAX_AGE_MS", "60000")
    )

    # --- Scanner ---
    VIOLATION_CONTEXT_CHARS: int = int(
        os.getenv("LEAKGUARD_VIOLATION_CONTEXT_CHARS", "30")
    )
    EXPLANATORY_CUE_WINDOW: int = int(
        os.getenv("LEAKGUARD_EXPLANATORY_CUE_WINDOW", "48")
    )

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("LEAKGUARD_LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv("LEAKGUARD_LOG_FORMAT", "json")  # "json" or "text"


settings = Settings()
