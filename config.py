"""
Central configuration for the supplier resolution service.

All paths, thresholds, and tuning knobs are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/resolver_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DB_PATH  = DEFAULT_DATA_DIR / "suppliers.db"


@dataclass
class Config:
    # --- Storage ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )

    # --- Tenant matching thresholds (0-100) ---
    auto_accept_threshold:  int = 80    # Update the matched supplier
    suggest_threshold:      int = 40    # Worth showing a reviewer
    ignore_threshold:       int = 20    # At or below: treat as no match
    create_threshold:       int = 60    # Minimum creation score without identifiers

    # --- Global registry ---
    global_link_threshold:   int = 90   # Link tenant supplier to global record
    global_review_threshold: int = 60   # Queue for review, do not link
    global_name_scan_limit: int = field(
        default_factory=lambda: int(os.getenv("GLOBAL_NAME_SCAN_LIMIT", "1000"))
    )
    global_scan_page_size:   int = 200

    # --- Slug generation ---
    slug_max_attempts:    int = 3
    slug_backoff_min_ms:  int = 50
    slug_backoff_max_ms:  int = 100

    # --- Attribute merge ---
    default_attribute_confidence: int = 70
    repeat_observation_increment: int = 5

    # --- Review queue ---
    persist_review_candidates: bool = field(
        default_factory=lambda: os.getenv("PERSIST_REVIEW_CANDIDATES", "true").lower() != "false"
    )

    # --- Logo lookup ---
    logo_token: Optional[str] = field(
        default_factory=lambda: os.getenv("LOGO_DEV_TOKEN")
    )
    logo_size:   int = 200
    logo_format: str = "png"
    logo_fetch_batch_size: int = 10

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from resolver_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "resolver_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "auto_accept_threshold":   int,
            "suggest_threshold":       int,
            "ignore_threshold":        int,
            "create_threshold":        int,
            "global_link_threshold":   int,
            "global_review_threshold": int,
            "global_name_scan_limit":  int,
            "global_scan_page_size":   int,
            "slug_max_attempts":       int,
            "slug_backoff_min_ms":     int,
            "slug_backoff_max_ms":     int,
            "default_attribute_confidence": int,
            "repeat_observation_increment": int,
            "persist_review_candidates":    bool,
            "logo_size":               int,
            "logo_format":             str,
            "logo_fetch_batch_size":   int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load resolver_settings.json: %s", exc)
