"""Configuration via environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Environment variable holding the credential for each pydantic-ai provider.
_PROVIDER_KEY_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google-gla": "GEMINI_API_KEY",
    "groq": "GROQ_API_KEY",
    "mistral": "MISTRAL_API_KEY",
}

STORAGE_BACKENDS = ("local", "onedrive")


@dataclass(frozen=True)
class OneDriveConfig:
    """Microsoft Graph client-credentials configuration."""

    client_id: str
    client_secret: str
    user_id: str
    tenant_id: str = "common"
    root_folder: str = "Invoices"


def get_llm_model() -> str:
    """Return the pydantic-ai model identifier.

    Defaults to openai:gpt-4o-mini.
    """
    return os.environ.get("LLM_MODEL", "openai:gpt-4o-mini")


def get_ai_api_key(model: str | None = None) -> str:
    """Return the API key for the provider of ``model``.

    The provider is the prefix before the colon in the model identifier.
    Providers without a known key variable are assumed to authenticate
    some other way and yield an empty string.
    """
    provider = (model or get_llm_model()).split(":", 1)[0]
    var = _PROVIDER_KEY_VARS.get(provider)
    if var is None:
        return ""
    key = os.environ.get(var)
    if not key:
        msg = f"{var} environment variable is required for model provider {provider!r}"
        raise ValueError(msg)
    return key


def get_organization_name() -> str:
    """Return ORGANIZATION_NAME, the company processing the invoices."""
    name = os.environ.get("ORGANIZATION_NAME", "").strip()
    if not name:
        msg = "ORGANIZATION_NAME environment variable is required"
        raise ValueError(msg)
    return name


def get_pdf_extract_endpoint() -> str | None:
    """Return PDF_EXTRACT_ENDPOINT, or None when unset or blank."""
    endpoint = os.environ.get("PDF_EXTRACT_ENDPOINT", "").strip()
    return endpoint or None


def get_http_timeout() -> float:
    """Return HTTP_TIMEOUT in seconds, defaulting to 30."""
    return float(os.environ.get("HTTP_TIMEOUT", "30"))


def get_storage_backend() -> str:
    """Return STORAGE_BACKEND, one of ``local`` or ``onedrive``."""
    backend = os.environ.get("STORAGE_BACKEND", "local").strip().lower()
    if backend not in STORAGE_BACKENDS:
        msg = f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got {backend!r}"
        raise ValueError(msg)
    return backend


def get_store_path() -> Path:
    """Return the INVOICE_STORE_PATH, defaulting to ./data/invoices.

    Always resolves to an absolute path to avoid issues if the
    working directory changes during execution.
    """
    return Path(os.environ.get("INVOICE_STORE_PATH", "./data/invoices")).resolve()


def get_onedrive_config() -> OneDriveConfig:
    """Build OneDrive configuration from environment variables.

    Required: ONEDRIVE_CLIENT_ID, ONEDRIVE_CLIENT_SECRET, ONEDRIVE_USER_ID
    Optional: ONEDRIVE_TENANT_ID (default common),
    ONEDRIVE_ROOT_FOLDER (default Invoices)
    """
    client_id = os.environ.get("ONEDRIVE_CLIENT_ID")
    client_secret = os.environ.get("ONEDRIVE_CLIENT_SECRET")
    user_id = os.environ.get("ONEDRIVE_USER_ID")

    missing = []
    if not client_id:
        missing.append("ONEDRIVE_CLIENT_ID")
    if not client_secret:
        missing.append("ONEDRIVE_CLIENT_SECRET")
    if not user_id:
        missing.append("ONEDRIVE_USER_ID")

    if missing:
        msg = f"Required environment variables not set: {', '.join(missing)}"
        raise ValueError(msg)

    return OneDriveConfig(
        client_id=client_id,  # type: ignore[arg-type]
        client_secret=client_secret,  # type: ignore[arg-type]
        user_id=user_id,  # type: ignore[arg-type]
        tenant_id=os.environ.get("ONEDRIVE_TENANT_ID") or "common",
        root_folder=os.environ.get("ONEDRIVE_ROOT_FOLDER") or "Invoices",
    )
