"""Configuration loading for the enquiry service.

Rules:
- Primary source: `enquiries_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("enquiries_config.json")
logger = logging.getLogger(__name__)

# Roles shipped with a fresh install; deployments override via ROLE_PERMISSIONS_JSON
DEFAULT_ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "admin": ["create:Enquiry", "read:Enquiry", "update:Enquiry", "manage:Form"],
    "field_worker": ["create:Enquiry", "read:Enquiry", "update:Enquiry"],
    "viewer": ["read:Enquiry"],
}


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class AttachmentsConfig(BaseModel):
    max_bytes: int = Field(gt=0)


class AccessConfig(BaseModel):
    role_permissions: Dict[str, List[str]]

    @field_validator("role_permissions")
    @classmethod
    def permissions_must_be_action_resource(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for role, perms in v.items():
            for perm in perms:
                action, sep, resource = str(perm).partition(":")
                if not sep or not action or not resource:
                    raise ValueError(f"access.role_permissions[{role}] entry {perm!r} must look like 'action:Resource'")
        return v


class SearchSyncConfig(BaseModel):
    # Notifications kept in-process until an indexer drains them
    buffer_limit: int = Field(default=1000, gt=0)


class AppConfig(BaseModel):
    database: DatabaseConfig
    attachments: AttachmentsConfig
    access: AccessConfig
    search_sync: SearchSyncConfig = Field(default_factory=SearchSyncConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) enquiries_config.json at project root
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )
    max_bytes_text = (
        _env("ATTACHMENT_MAX_BYTES")
        or _read_config_file("attachments.max_bytes")
        or _base("attachments.max_bytes", "10485760")
    )

    buffer_limit_text = (
        _env("SEARCH_SYNC_BUFFER_LIMIT")
        or _read_config_file("search_sync.buffer_limit")
        or _base("search_sync.buffer_limit", "1000")
    )

    permissions_text = _env("ROLE_PERMISSIONS_JSON") or _read_config_file("access.role_permissions.json")
    if permissions_text:
        try:
            role_permissions = json.loads(permissions_text)
        except json.JSONDecodeError as e:
            logger.error("Invalid role permissions JSON: %s", e)
            raise
    else:
        access = base.get("access") if isinstance(base.get("access"), dict) else {}
        role_permissions = access.get("role_permissions") or DEFAULT_ROLE_PERMISSIONS

    try:
        cfg = AppConfig(
            database=DatabaseConfig(dsn=dsn),
            attachments=AttachmentsConfig(max_bytes=int(str(max_bytes_text).strip())),
            access=AccessConfig(role_permissions=role_permissions),
            search_sync=SearchSyncConfig(buffer_limit=int(str(buffer_limit_text).strip())),
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "AttachmentsConfig",
    "AccessConfig",
    "SearchSyncConfig",
    "DEFAULT_ROLE_PERMISSIONS",
    "load_config",
]
