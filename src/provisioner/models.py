"""Pydantic models for vaults and access policies.

These models provide:
1. Validation at the boundary (permission names, SKU, regions)
2. Access-policy merge semantics keyed by principal
3. Clean transformation to azure-mgmt-keyvault request models
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Annotated, Literal

from azure.mgmt.keyvault import models as kv_models
from pydantic import BaseModel, Field, field_validator

# =============================================================================
# Permissions
# =============================================================================

VALID_KEY_PERMISSIONS = frozenset(p.value.lower() for p in kv_models.KeyPermissions)
VALID_SECRET_PERMISSIONS = frozenset(p.value.lower() for p in kv_models.SecretPermissions)
VALID_CERTIFICATE_PERMISSIONS = frozenset(
    p.value.lower() for p in kv_models.CertificatePermissions
)
VALID_STORAGE_PERMISSIONS = frozenset(p.value.lower() for p in kv_models.StoragePermissions)

ALL_PERMISSION = "all"

# Key Vault SKU family is always "A"
SKU_FAMILY = "A"


def _normalize_permissions(values: list[str], allowed: frozenset[str], kind: str) -> list[str]:
    """Lowercase, validate and de-duplicate permission names.

    "all" subsumes every other permission and collapses the list.
    """
    normalized: list[str] = []
    for value in values:
        name = value.strip().lower()
        if name not in allowed:
            raise ValueError(f"Unknown {kind} permission: {value!r}")
        if name not in normalized:
            normalized.append(name)
    if ALL_PERMISSION in normalized:
        return [ALL_PERMISSION]
    return normalized


class Permissions(BaseModel):
    """Permission set over keys, secrets, certificates and storage."""

    model_config = {"extra": "forbid", "frozen": True}

    keys: list[str] = Field(default_factory=list)
    secrets: list[str] = Field(default_factory=list)
    certificates: list[str] = Field(default_factory=list)
    storage: list[str] = Field(default_factory=list)

    @field_validator("keys")
    @classmethod
    def validate_keys(cls, v: list[str]) -> list[str]:
        return _normalize_permissions(v, VALID_KEY_PERMISSIONS, "key")

    @field_validator("secrets")
    @classmethod
    def validate_secrets(cls, v: list[str]) -> list[str]:
        return _normalize_permissions(v, VALID_SECRET_PERMISSIONS, "secret")

    @field_validator("certificates")
    @classmethod
    def validate_certificates(cls, v: list[str]) -> list[str]:
        return _normalize_permissions(v, VALID_CERTIFICATE_PERMISSIONS, "certificate")

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: list[str]) -> list[str]:
        return _normalize_permissions(v, VALID_STORAGE_PERMISSIONS, "storage")

    def union(self, other: Permissions) -> Permissions:
        """Return a permission set granting everything either set grants."""
        return Permissions(
            keys=[*self.keys, *other.keys],
            secrets=[*self.secrets, *other.secrets],
            certificates=[*self.certificates, *other.certificates],
            storage=[*self.storage, *other.storage],
        )

    def to_sdk(self) -> kv_models.Permissions:
        return kv_models.Permissions(
            keys=list(self.keys),
            secrets=list(self.secrets),
            certificates=list(self.certificates),
            storage=list(self.storage),
        )


# Permission profiles granted by the workflow
PRIMARY_GRANT = Permissions(keys=["all"], secrets=["get", "list"])
SECRETS_FULL_GRANT = Permissions(secrets=["all"])
SECONDARY_GRANT = Permissions(keys=["list", "get", "decrypt"], secrets=["get"])


# =============================================================================
# Access Policies
# =============================================================================


class AccessPolicyEntry(BaseModel):
    """Permissions granted to one principal in one tenant."""

    model_config = {"extra": "forbid", "frozen": True}

    tenant_id: Annotated[str, Field(min_length=1)]
    object_id: Annotated[str, Field(min_length=1)]
    permissions: Permissions = Field(default_factory=Permissions)

    @property
    def principal_key(self) -> tuple[str, str]:
        return (self.tenant_id.lower(), self.object_id.lower())

    def broadened(self, permissions: Permissions) -> AccessPolicyEntry:
        """Return this entry with additional permissions folded in."""
        return self.model_copy(update={"permissions": self.permissions.union(permissions)})

    def to_sdk(self) -> kv_models.AccessPolicyEntry:
        return kv_models.AccessPolicyEntry(
            tenant_id=self.tenant_id,
            object_id=self.object_id,
            permissions=self.permissions.to_sdk(),
        )


class AccessPolicySet:
    """A vault's access policies, keyed by principal.

    Adding an entry for a principal that already has one replaces it, so
    the set never holds two entries for the same principal.
    """

    def __init__(self, entries: Iterable[AccessPolicyEntry] = ()) -> None:
        self._entries: dict[tuple[str, str], AccessPolicyEntry] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: AccessPolicyEntry) -> None:
        self._entries[entry.principal_key] = entry

    def remove(self, principal_key: tuple[str, str]) -> AccessPolicyEntry | None:
        return self._entries.pop((principal_key[0].lower(), principal_key[1].lower()), None)

    def get(self, tenant_id: str, object_id: str) -> AccessPolicyEntry | None:
        return self._entries.get((tenant_id.lower(), object_id.lower()))

    def entries(self) -> list[AccessPolicyEntry]:
        return list(self._entries.values())

    def __contains__(self, principal_key: object) -> bool:
        if not isinstance(principal_key, tuple) or len(principal_key) != 2:
            return False
        tenant_id, object_id = principal_key
        return (str(tenant_id).lower(), str(object_id).lower()) in self._entries

    def __iter__(self) -> Iterator[AccessPolicyEntry]:
        return iter(self.entries())

    def __len__(self) -> int:
        return len(self._entries)


def dedupe_by_principal(entries: Iterable[AccessPolicyEntry]) -> list[AccessPolicyEntry]:
    """Collapse entries so each principal appears once, last one winning."""
    return AccessPolicySet(entries).entries()


# =============================================================================
# Vaults
# =============================================================================


class NetworkRules(BaseModel):
    """Vault firewall defaults."""

    model_config = {"extra": "forbid", "frozen": True}

    default_action: Literal["Allow", "Deny"] = "Allow"
    bypass: Literal["AzureServices", "None"] = "AzureServices"

    def to_sdk(self) -> kv_models.NetworkRuleSet:
        return kv_models.NetworkRuleSet(bypass=self.bypass, default_action=self.default_action)


class VaultDescriptor(BaseModel):
    """Desired state of one Key Vault."""

    model_config = {"extra": "forbid", "frozen": True}

    name: Annotated[str, Field(min_length=3, max_length=24, pattern=r"^[A-Za-z][A-Za-z0-9-]*$")]
    location: Annotated[str, Field(min_length=2)]
    tenant_id: Annotated[str, Field(min_length=1)]
    sku: Literal["standard", "premium"] = "premium"
    access_policies: list[AccessPolicyEntry] = Field(default_factory=list)
    network_rules: NetworkRules | None = None
    enabled_for_deployment: bool | None = None
    enabled_for_template_deployment: bool | None = None
    public_network_access: Literal["enabled", "disabled"] | None = None

    @field_validator("access_policies")
    @classmethod
    def validate_unique_principals(cls, v: list[AccessPolicyEntry]) -> list[AccessPolicyEntry]:
        return dedupe_by_principal(v)

    def with_updates(self, **updates: object) -> VaultDescriptor:
        """Return a validated copy with the given fields replaced."""
        return VaultDescriptor.model_validate({**self.model_dump(), **updates})

    def _sdk_sku(self) -> kv_models.Sku:
        return kv_models.Sku(family=SKU_FAMILY, name=self.sku)

    def _sdk_network_rules(self) -> kv_models.NetworkRuleSet | None:
        return self.network_rules.to_sdk() if self.network_rules else None

    def to_create_parameters(self) -> kv_models.VaultCreateOrUpdateParameters:
        """Build the create-or-update request body."""
        properties = kv_models.VaultProperties(
            tenant_id=self.tenant_id,
            sku=self._sdk_sku(),
            access_policies=[entry.to_sdk() for entry in self.access_policies],
            enabled_for_deployment=self.enabled_for_deployment,
            enabled_for_template_deployment=self.enabled_for_template_deployment,
            network_acls=self._sdk_network_rules(),
            public_network_access=self.public_network_access,
        )
        return kv_models.VaultCreateOrUpdateParameters(
            location=self.location,
            properties=properties,
        )

    def to_patch_parameters(self) -> kv_models.VaultPatchParameters:
        """Build the PATCH request body.

        Access policies and infrastructure settings travel in one request.
        """
        properties = kv_models.VaultPatchProperties(
            tenant_id=self.tenant_id,
            sku=self._sdk_sku(),
            access_policies=[entry.to_sdk() for entry in self.access_policies],
            enabled_for_deployment=self.enabled_for_deployment,
            enabled_for_template_deployment=self.enabled_for_template_deployment,
            network_acls=self._sdk_network_rules(),
            public_network_access=self.public_network_access,
        )
        return kv_models.VaultPatchParameters(properties=properties)
