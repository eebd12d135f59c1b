"""
Central configuration for the purchase-order back office.

All paths, feature flags, and document settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/app_settings.json  (admin-editable, persisted)
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

# Default data locations (relative to project root)
DEFAULT_OUTPUT_DIR   = PROJECT_ROOT / "output"
DEFAULT_DB_PATH      = DEFAULT_OUTPUT_DIR / "backoffice.db"
DEFAULT_STORAGE_ROOT = PROJECT_ROOT / "uploads"
DEFAULT_BACKUP_DIR   = PROJECT_ROOT / "backups"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() not in ("false", "0", "no")


@dataclass
class Config:
    # --- Persistence ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )

    # --- File storage ---
    # Generated PDFs live in <storage_root>/orders/
    storage_root: Path = field(
        default_factory=lambda: Path(os.getenv("STORAGE_ROOT_PATH", str(DEFAULT_STORAGE_ROOT)))
    )

    # --- Public URLs ---
    # When unset, download links are built from the incoming request's base URL.
    public_api_base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("PUBLIC_API_BASE_URL") or None
    )

    # --- Document rendering ---
    logo_path: Optional[Path] = field(
        default_factory=lambda: Path(os.environ["ORDER_LOGO_PATH"]) if os.getenv("ORDER_LOGO_PATH") else None
    )
    company_name: str = field(
        default_factory=lambda: os.getenv("ORDER_COMPANY_NAME", "Back Office")
    )
    currency_symbol: str = "€"

    # --- Feature flags ---
    # Rebuild the PDF from the stored snapshot on every download so layout
    # changes apply to historical orders.
    regenerate_on_read: bool = field(
        default_factory=lambda: _env_flag("REGENERATE_ON_READ", "true")
    )
    # Keep serving GET /orders/{id}/bon for older mobile clients.
    legacy_bon_route: bool = field(
        default_factory=lambda: _env_flag("LEGACY_BON_ROUTE", "true")
    )

    # --- Backup settings ---
    backup_dir: Path = field(
        default_factory=lambda: Path(os.getenv("BACKUP_DIR", str(DEFAULT_BACKUP_DIR)))
    )
    backup_retention_count: int = field(
        default_factory=lambda: int(os.getenv("BACKUP_RETENTION_COUNT", "7"))
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from app_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "app_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "public_api_base_url":    str,
            "company_name":           str,
            "currency_symbol":        str,
            "regenerate_on_read":     bool,
            "legacy_bon_route":       bool,
            "backup_retention_count": int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load app_settings.json: %s", exc)

    @property
    def orders_dir(self) -> Path:
        return self.storage_root / "orders"

    def ensure_storage_dirs(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.orders_dir.mkdir(parents=True, exist_ok=True)
