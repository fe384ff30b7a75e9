import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Loads the .env at the project root
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./wa_compliance.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

META_WA_VERIFY_TOKEN = os.getenv("META_WA_VERIFY_TOKEN", "")

COMPLIANCE_POLICY_PATH = os.getenv("COMPLIANCE_POLICY_PATH", "").strip()

CONSENT_VALIDITY_DAYS = int(os.getenv("CONSENT_VALIDITY_DAYS", "730"))
MESSAGING_WINDOW_HOURS = float(os.getenv("MESSAGING_WINDOW_HOURS", "24"))
QUALITY_WINDOW_DAYS = int(os.getenv("QUALITY_WINDOW_DAYS", "7"))

AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "1" if IS_DEV else "0").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}


@dataclass(frozen=True)
class ComplianceSettings:
    consent_validity_days: int = CONSENT_VALIDITY_DAYS
    messaging_window_hours: float = MESSAGING_WINDOW_HOURS
    quality_window_days: int = QUALITY_WINDOW_DAYS


def get_compliance_settings() -> ComplianceSettings:
    return ComplianceSettings()
