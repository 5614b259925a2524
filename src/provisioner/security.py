"""Credential loading for the service principal that drives the workflow.

SECURITY INVARIANTS:
1. All four credential variables must be present before any Azure call
2. The client secret is never logged, rendered or included in errors
3. Audit events carry resource identifiers only, never token material
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field

from azure.identity import ClientSecretCredential

from .config import VALID_GUID_PATTERN
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

# Environment variables that must be set to authenticate
CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "CLIENT_ID",
    "CLIENT_SECRET",
    "TENANT_ID",
    "SUBSCRIPTION_ID",
)

# Variables whose value must be a GUID
GUID_CREDENTIAL_ENV_VARS: tuple[str, ...] = ("CLIENT_ID", "TENANT_ID", "SUBSCRIPTION_ID")


@dataclass(frozen=True)
class Credentials:
    """Service principal credentials read from the process environment."""

    client_id: str
    tenant_id: str
    subscription_id: str
    client_secret: str = field(repr=False)


def load_credentials() -> Credentials:
    """Read and validate service principal credentials from the environment.

    Returns:
        Credentials for ClientSecretCredential.

    Raises:
        AuthenticationError: If any variable is missing or malformed.
    """
    missing = [name for name in CREDENTIAL_ENV_VARS if not os.environ.get(name)]
    if missing:
        logger.error(
            "Credential environment incomplete",
            extra={"security_event": "credential_missing", "missing": missing},
        )
        raise AuthenticationError(
            f"Missing credential environment variables: {', '.join(missing)}"
        )

    malformed = [
        name
        for name in GUID_CREDENTIAL_ENV_VARS
        if not re.match(VALID_GUID_PATTERN, os.environ[name].strip().lower())
    ]
    if malformed:
        raise AuthenticationError(
            f"Credential environment variables must be GUIDs: {', '.join(malformed)}"
        )

    return Credentials(
        client_id=os.environ["CLIENT_ID"].strip(),
        tenant_id=os.environ["TENANT_ID"].strip(),
        subscription_id=os.environ["SUBSCRIPTION_ID"].strip(),
        client_secret=os.environ["CLIENT_SECRET"],
    )


def get_client_secret_credential(credentials: Credentials) -> ClientSecretCredential:
    """Build the Azure credential for the service principal.

    Args:
        credentials: Validated credentials from load_credentials().

    Returns:
        ClientSecretCredential bound to the tenant.
    """
    logger.info(
        "Using service principal credential",
        extra={
            "client_id": credentials.client_id[:8] + "...",
            "tenant_id": credentials.tenant_id,
        },
    )
    return ClientSecretCredential(
        tenant_id=credentials.tenant_id,
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
    )


def log_audit_event(
    event_type: str,
    target_resource: str | None = None,
    action: str | None = None,
    result: str | None = None,
) -> None:
    """Log a structured audit event for a control-plane mutation.

    Args:
        event_type: Kind of event (resource_group, vault, access_policy).
        target_resource: Name or ARM ID of the resource acted on.
        action: Action performed (create, update, delete, ...).
        result: Outcome (success, failure).
    """
    logger.info(
        f"Audit: {event_type} {action}",
        extra={
            "security_audit": True,
            "event_type": event_type,
            "target_resource": target_resource,
            "action": action,
            "result": result,
        },
    )
