import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def load_local_env() -> None:
    """
    Load environment variables from a local .env file if present without
    overriding variables that are already set.
    """
    env_path = Path(__file__).resolve().parent / ".env"
    if not env_path.exists():
        return

    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key and key not in os.environ:
            os.environ[key] = value.strip().strip("'").strip('"')


# Load .env immediately on import so other modules see values in os.environ
load_local_env()

DEFAULT_USER_AGENT = "craft-api/0.1.0 (+https://github.com/craft-api/craft-api)"

MODRINTH_BASE_URL = os.environ.get("MODRINTH_BASE_URL", "https://api.modrinth.com/v2")
MODRINTH_USER_AGENT = os.environ.get("MODRINTH_USER_AGENT", DEFAULT_USER_AGENT)
CURSEFORGE_BASE_URL = os.environ.get("CURSEFORGE_BASE_URL", "https://api.curseforge.com/v1")
CURSEFORGE_API_KEY = os.environ.get("CURSEFORGE_API_KEY")

FABRIC_META_URL = os.environ.get("FABRIC_META_URL", "https://meta.fabricmc.net/v2")
MOJANG_VERSION_MANIFEST_URL = os.environ.get(
    "MOJANG_VERSION_MANIFEST_URL",
    "https://launchermeta.mojang.com/mc/game/version_manifest.json",
)
MOJANG_JAVA_RUNTIME_URL = os.environ.get(
    "MOJANG_JAVA_RUNTIME_URL",
    "https://piston-meta.mojang.com/v1/products/java-runtime/2ec0cc96c44e5a76b9c8b7c39df7210883d12871/all.json",
)

HTTP_TIMEOUT_SECONDS = float(os.environ.get("CRAFTAPI_HTTP_TIMEOUT_SECONDS", "20"))
STATUS_TIMEOUT_SECONDS = float(os.environ.get("CRAFTAPI_STATUS_TIMEOUT_SECONDS", "5"))
LOG_LEVEL = os.environ.get("CRAFTAPI_LOG_LEVEL", "INFO")


class ProviderSettings(BaseModel):
    """Connection settings handed to a platform adapter."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    user_agent: str = DEFAULT_USER_AGENT
    api_key: Optional[str] = None
    timeout: float = Field(HTTP_TIMEOUT_SECONDS, gt=0)


def modrinth_settings() -> ProviderSettings:
    return ProviderSettings(
        base_url=MODRINTH_BASE_URL.rstrip("/"),
        user_agent=MODRINTH_USER_AGENT,
        timeout=HTTP_TIMEOUT_SECONDS,
    )


def curseforge_settings() -> ProviderSettings:
    return ProviderSettings(
        base_url=CURSEFORGE_BASE_URL.rstrip("/"),
        user_agent=MODRINTH_USER_AGENT,
        api_key=CURSEFORGE_API_KEY,
        timeout=HTTP_TIMEOUT_SECONDS,
    )


def validate_curseforge_settings() -> None:
    """
    Ensure CurseForge settings are present; raise early if missing.
    """
    if not CURSEFORGE_BASE_URL or not CURSEFORGE_API_KEY:
        raise RuntimeError(
            "Missing required environment variables: CURSEFORGE_BASE_URL and "
            "CURSEFORGE_API_KEY. Set them in craftapi/.env"
        )
