from __future__ import annotations

import hashlib
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache

import structlog

logger = structlog.get_logger(__name__)

ADMIN_ID_HEADER = "X-Admin-Id"
ADMIN_SECRET_HEADER = "X-Admin-Secret"
LEGACY_ADMIN_PASSWORD_HEADER = "X-Admin-Password"
DEFAULT_LEGACY_ADMIN_ID = "admin"

CAPABILITY_READ_PENDING = "read_pending"
CAPABILITY_APPROVE = "approve"
CAPABILITY_REJECT = "reject"
ALL_CAPABILITIES = frozenset({CAPABILITY_READ_PENDING, CAPABILITY_APPROVE, CAPABILITY_REJECT})


@dataclass(frozen=True, slots=True)
class AdminCredential:
    admin_id: str
    secret_sha256: str
    capabilities: frozenset[str]


@dataclass(frozen=True, slots=True)
class AdminPrincipal:
    admin_id: str
    capabilities: frozenset[str]
    legacy: bool = False

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


def hash_admin_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


@lru_cache(maxsize=32)
def parse_admin_credentials(raw: str) -> tuple[AdminCredential, ...]:
    """Parse ``admin_id:sha256hex:cap|cap`` entries separated by ``;``."""
    credentials: list[AdminCredential] = []
    for raw_entry in raw.split(";"):
        entry = raw_entry.strip()
        if not entry:
            continue

        parts = entry.split(":")
        if len(parts) != 3:
            logger.warning("admin_credentials_entry_invalid")
            continue

        admin_id, secret_hash, raw_capabilities = (part.strip() for part in parts)
        capabilities = frozenset(
            capability.strip()
            for capability in raw_capabilities.split("|")
            if capability.strip() in ALL_CAPABILITIES
        )
        if not admin_id or len(secret_hash) != 64:
            logger.warning("admin_credentials_entry_invalid", admin_id=admin_id or None)
            continue
        credentials.append(
            AdminCredential(
                admin_id=admin_id,
                secret_sha256=secret_hash.lower(),
                capabilities=capabilities,
            )
        )
    return tuple(credentials)


def _authenticate_credential(
    *,
    admin_id: str,
    secret: str,
    credentials: tuple[AdminCredential, ...],
) -> AdminPrincipal | None:
    received_hash = hash_admin_secret(secret)
    for credential in credentials:
        if credential.admin_id != admin_id:
            continue
        if secrets.compare_digest(credential.secret_sha256, received_hash):
            return AdminPrincipal(admin_id=credential.admin_id, capabilities=credential.capabilities)
        return None
    return None


def authenticate_admin(
    headers: Mapping[str, str],
    *,
    credentials_raw: str,
    shared_secret: str,
    admin_by: str | None = None,
) -> AdminPrincipal | None:
    admin_id = (headers.get(ADMIN_ID_HEADER) or "").strip()
    admin_secret = headers.get(ADMIN_SECRET_HEADER) or ""
    if admin_id and admin_secret:
        return _authenticate_credential(
            admin_id=admin_id,
            secret=admin_secret,
            credentials=parse_admin_credentials(credentials_raw),
        )

    legacy_password = headers.get(LEGACY_ADMIN_PASSWORD_HEADER)
    if (
        shared_secret
        and legacy_password
        and secrets.compare_digest(shared_secret.encode("utf-8"), legacy_password.encode("utf-8"))
    ):
        resolved_admin_id = (admin_by or "").strip()[:64] or DEFAULT_LEGACY_ADMIN_ID
        return AdminPrincipal(admin_id=resolved_admin_id, capabilities=ALL_CAPABILITIES, legacy=True)

    return None
