"""Configuration management with validation.

Non-secret settings are validated at load time so the workflow fails fast,
before any Azure resource is created. Credential values are handled
separately by security.load_credentials().
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_RESOURCE_GROUP_LOCATION = "eastus"
DEFAULT_PRIMARY_VAULT_LOCATION = "westus"
DEFAULT_SECONDARY_VAULT_LOCATION = "eastus"

DEFAULT_OPERATION_TIMEOUT_SECONDS = 1800
MIN_OPERATION_TIMEOUT_SECONDS = 60
MAX_OPERATION_TIMEOUT_SECONDS = 7200

# Name prefixes for generated resources
RESOURCE_GROUP_NAME_PREFIX = "KeyVaultRG"
PRIMARY_VAULT_NAME_PREFIX = "vault1"
SECONDARY_VAULT_NAME_PREFIX = "vault2"

# Input validation patterns
VALID_GUID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_LOCATION_PATTERN = r"^[a-z]{2,}[a-z0-9]*$"


@dataclass(frozen=True)
class Config:
    """Workflow configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError listing every problem found.
    """

    # Required fields
    tenant_id: str
    subscription_id: str
    object_id: str

    # Regions
    resource_group_location: str = DEFAULT_RESOURCE_GROUP_LOCATION
    primary_vault_location: str = DEFAULT_PRIMARY_VAULT_LOCATION
    secondary_vault_location: str = DEFAULT_SECONDARY_VAULT_LOCATION

    # Timing
    operation_timeout_seconds: int = DEFAULT_OPERATION_TIMEOUT_SECONDS

    # Behavior
    enable_audit_logging: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.tenant_id:
            errors.append("TENANT_ID is required")
        elif not re.match(VALID_GUID_PATTERN, self.tenant_id.lower()):
            errors.append(f"TENANT_ID must be a valid GUID: {self.tenant_id}")

        if not self.subscription_id:
            errors.append("SUBSCRIPTION_ID is required")
        elif not re.match(VALID_GUID_PATTERN, self.subscription_id.lower()):
            errors.append(f"SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if not self.object_id:
            errors.append("OBJECT_ID is required")
        elif not re.match(VALID_GUID_PATTERN, self.object_id.lower()):
            errors.append(f"OBJECT_ID must be a valid GUID: {self.object_id}")

        for key, value in (
            ("RESOURCE_GROUP_LOCATION", self.resource_group_location),
            ("PRIMARY_VAULT_LOCATION", self.primary_vault_location),
            ("SECONDARY_VAULT_LOCATION", self.secondary_vault_location),
        ):
            if not value or not re.match(VALID_LOCATION_PATTERN, value):
                errors.append(f"{key} must be a valid Azure region: {value}")

        if self.primary_vault_location == self.secondary_vault_location:
            errors.append("PRIMARY_VAULT_LOCATION and SECONDARY_VAULT_LOCATION must differ")

        if not (
            MIN_OPERATION_TIMEOUT_SECONDS
            <= self.operation_timeout_seconds
            <= MAX_OPERATION_TIMEOUT_SECONDS
        ):
            errors.append(
                f"OPERATION_TIMEOUT must be between {MIN_OPERATION_TIMEOUT_SECONDS} "
                f"and {MAX_OPERATION_TIMEOUT_SECONDS} seconds"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            TENANT_ID: Entra ID tenant owning the vaults
            SUBSCRIPTION_ID: Target Azure subscription
            OBJECT_ID: Object ID of the principal granted vault access
            RESOURCE_GROUP_LOCATION: Region of the resource group (default: eastus)
            PRIMARY_VAULT_LOCATION: Region of the first vault (default: westus)
            SECONDARY_VAULT_LOCATION: Region of the second vault (default: eastus)
            OPERATION_TIMEOUT: Seconds to wait for each long-running operation
                (default: 1800)
            ENABLE_AUDIT_LOGGING: Emit structured audit events (default: true)

        CLIENT_ID and CLIENT_SECRET are read by security.load_credentials().
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        def get_location(key: str, default: str) -> str:
            return os.environ.get(key, default).strip().lower()

        return cls(
            tenant_id=os.environ.get("TENANT_ID", ""),
            subscription_id=os.environ.get("SUBSCRIPTION_ID", ""),
            object_id=os.environ.get("OBJECT_ID", ""),
            resource_group_location=get_location(
                "RESOURCE_GROUP_LOCATION", DEFAULT_RESOURCE_GROUP_LOCATION
            ),
            primary_vault_location=get_location(
                "PRIMARY_VAULT_LOCATION", DEFAULT_PRIMARY_VAULT_LOCATION
            ),
            secondary_vault_location=get_location(
                "SECONDARY_VAULT_LOCATION", DEFAULT_SECONDARY_VAULT_LOCATION
            ),
            operation_timeout_seconds=get_int(
                "OPERATION_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS
            ),
            enable_audit_logging=get_bool("ENABLE_AUDIT_LOGGING", True),
        )
