"""Application configuration — loads .env, then overrides from settings.json."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Find the project root (where .env lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# Runtime settings file for in-app configuration
_SETTINGS_FILE = _PROJECT_ROOT / "data" / "settings.json"


def _load_settings() -> dict:
    """Load saved runtime settings from JSON file."""
    if _SETTINGS_FILE.exists():
        try:
            return json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def _save_settings(settings: dict):
    """Persist runtime settings to JSON file."""
    _SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(
        json.dumps(settings, indent=2), encoding="utf-8"
    )


# Load saved settings once at import time
_runtime = _load_settings()


class Config:
    """Central configuration: .env defaults, settings.json overrides."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATABASE_PATH: Path = Path(
        os.getenv("DATABASE_PATH", str(_PROJECT_ROOT / "data" / "luxe_crm.db"))
    )
    BACKUP_PATH: Path = Path(
        os.getenv("DATABASE_BACKUP_PATH", str(_PROJECT_ROOT / "data" / "backups"))
    )

    # LLM endpoint (any OpenAI-compatible server; settings.json overrides .env)
    LLM_BASE_URL: str = _runtime.get(
        "llm_base_url",
        os.getenv("LLM_BASE_URL", "http://localhost:1234/v1"),
    )
    LLM_API_KEY: str = _runtime.get(
        "llm_api_key",
        os.getenv("LLM_API_KEY", "not-needed"),
    )
    LLM_MODEL: str = _runtime.get(
        "llm_model",
        os.getenv("LLM_MODEL", "local-model"),
    )
    LLM_TIMEOUT: int = int(_runtime.get(
        "llm_timeout",
        os.getenv("LLM_TIMEOUT", "60"),
    ))
    COMPANY_DESCRIPTION: str = _runtime.get(
        "company_description",
        os.getenv(
            "COMPANY_DESCRIPTION",
            "LUXE Maintenance Corporation is a premium maintenance provider "
            "offering comprehensive solutions for residential and commercial "
            "properties.",
        ),
    )

    # Reference numbers
    ESTIMATE_NUMBER_PREFIX: str = _runtime.get(
        "estimate_number_prefix",
        os.getenv("ESTIMATE_NUMBER_PREFIX", "EST"),
    )
    JOB_NUMBER_PREFIX: str = _runtime.get(
        "job_number_prefix",
        os.getenv("JOB_NUMBER_PREFIX", "JOB"),
    )
    INVOICE_NUMBER_PREFIX: str = _runtime.get(
        "invoice_number_prefix",
        os.getenv("INVOICE_NUMBER_PREFIX", "INV"),
    )

    # Billing
    INVOICE_DUE_DAYS: int = int(_runtime.get(
        "invoice_due_days",
        os.getenv("INVOICE_DUE_DAYS", "30"),
    ))
    ESTIMATE_VALID_DAYS: int = int(_runtime.get(
        "estimate_valid_days",
        os.getenv("ESTIMATE_VALID_DAYS", "30"),
    ))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def prefix_for(cls, kind: str) -> str:
        """Return the reference-number prefix for a document kind.

        Raises KeyError for kinds that carry no reference number.
        """
        prefixes = {
            "estimate": cls.ESTIMATE_NUMBER_PREFIX,
            "job": cls.JOB_NUMBER_PREFIX,
            "invoice": cls.INVOICE_NUMBER_PREFIX,
        }
        return prefixes[kind]

    @classmethod
    def update_llm_settings(cls, base_url: str, api_key: str,
                            model: str, timeout: int):
        """Update LLM settings at runtime and persist to disk."""
        cls.LLM_BASE_URL = base_url
        cls.LLM_API_KEY = api_key
        cls.LLM_MODEL = model
        cls.LLM_TIMEOUT = timeout

        settings = _load_settings()
        settings["llm_base_url"] = base_url
        settings["llm_api_key"] = api_key
        settings["llm_model"] = model
        settings["llm_timeout"] = timeout
        _save_settings(settings)

    @classmethod
    def update_number_prefixes(cls, estimate: str, job: str, invoice: str):
        """Update reference-number prefixes and persist."""
        cls.ESTIMATE_NUMBER_PREFIX = estimate
        cls.JOB_NUMBER_PREFIX = job
        cls.INVOICE_NUMBER_PREFIX = invoice

        settings = _load_settings()
        settings["estimate_number_prefix"] = estimate
        settings["job_number_prefix"] = job
        settings["invoice_number_prefix"] = invoice
        _save_settings(settings)

    @classmethod
    def update_billing_settings(cls, invoice_due_days: int,
                                estimate_valid_days: int):
        """Update invoice/estimate day windows and persist."""
        cls.INVOICE_DUE_DAYS = invoice_due_days
        cls.ESTIMATE_VALID_DAYS = estimate_valid_days

        settings = _load_settings()
        settings["invoice_due_days"] = invoice_due_days
        settings["estimate_valid_days"] = estimate_valid_days
        _save_settings(settings)
