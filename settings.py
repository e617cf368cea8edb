"""
Centralized configuration helpers for tenant scoping and upstream access.
"""
from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()

# Channel slug used for every product/variant/checkout query upstream.
DEFAULT_CHANNEL: str = os.getenv("DEFAULT_CHANNEL") or "default-channel"

# Row discriminator inside saleor_app_configuration.
APP_NAME: str = os.getenv("APP_NAME") or "kits-and-bundles"

# Header the storefront uses to name the tenant (its GraphQL API URL).
TENANT_HEADER: str = "Saleor-Domain"

UPSTREAM_TIMEOUT_SECONDS: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30"))

# Checkout metadata key holding the per-bundle quantity ledger.
BUNDLE_LEDGER_KEY: str = "bundle_quantities"

CREDENTIAL_STORE_ENV_VARS: tuple[str, ...] = (
    "DB_HOST",
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
)


def sanitize_tenant(value: Optional[Any]) -> Optional[str]:
    """Normalize a raw tenant header value (strip whitespace, drop empties)."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def missing_credential_store_vars() -> list[str]:
    """
    Return the credential store env vars that are unset.
    A full DATABASE_URL satisfies all of them.
    """
    if os.getenv("DATABASE_URL"):
        return []
    return [name for name in CREDENTIAL_STORE_ENV_VARS if not os.getenv(name)]
