from __future__ import annotations

import secrets
from collections.abc import Mapping

from app.economy.identity.types import CallerIdentity

GATEWAY_TOKEN_HEADER = "X-Gateway-Token"
IDENTITY_SUBJECT_HEADER = "X-Identity-Subject"
IDENTITY_EMAIL_HEADER = "X-Identity-Email"


def is_valid_gateway_token(*, expected_token: str, received_token: str | None) -> bool:
    if not expected_token or not received_token:
        return False
    return secrets.compare_digest(expected_token.encode("utf-8"), received_token.encode("utf-8"))


def extract_caller_identity(
    headers: Mapping[str, str],
    *,
    expected_token: str,
) -> CallerIdentity | None:
    if not is_valid_gateway_token(
        expected_token=expected_token,
        received_token=headers.get(GATEWAY_TOKEN_HEADER),
    ):
        return None

    identity = CallerIdentity(
        external_id=headers.get(IDENTITY_SUBJECT_HEADER),
        email=headers.get(IDENTITY_EMAIL_HEADER),
    ).normalized()
    if identity.is_empty:
        return None
    return identity
