"""Mock Azure Resource Manager and Key Vault management state.

Provides in-memory resource groups and vaults with realistic access-policy
update semantics, a call log for ordering assertions and per-operation
failure injection.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from azure.core.exceptions import HttpResponseError, ODataV4Format, ResourceNotFoundError

# Operation names recorded in the call log and accepted by fail_on
OPERATIONS: tuple[str, ...] = (
    "subscriptions.get",
    "resource_groups.create_or_update",
    "resource_groups.begin_delete",
    "vaults.begin_create_or_update",
    "vaults.update_access_policy",
    "vaults.update",
    "vaults.list_by_resource_group",
    "vaults.delete",
)


def _http_error(message: str, status_code: int, code: str | None = None) -> HttpResponseError:
    error = HttpResponseError(message=message)
    error.status_code = status_code
    if code:
        error.reason = code
        error.error = ODataV4Format({"code": code, "message": message})
    return error


@dataclass
class MockSubscription:
    """A subscription in mock state (matches SDK Subscription attributes)."""

    subscription_id: str
    tenant_id: str | None = None
    display_name: str | None = None
    state: str = "Enabled"

    @property
    def id(self) -> str:
        return f"/subscriptions/{self.subscription_id}"


@dataclass
class MockResourceGroup:
    """A resource group in mock state (matches SDK ResourceGroup attributes)."""

    name: str
    location: str
    subscription_id: str
    tags: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def id(self) -> str:
        return f"/subscriptions/{self.subscription_id}/resourceGroups/{self.name}"


@dataclass
class MockVault:
    """A Key Vault in mock state (matches SDK Vault attributes)."""

    name: str
    resource_group: str
    location: str
    subscription_id: str
    tenant_id: str
    sku: str
    access_policies: list[Any] = field(default_factory=list)
    enabled_for_deployment: bool | None = None
    enabled_for_template_deployment: bool | None = None
    network_acls: Any | None = None
    public_network_access: str | None = None

    @property
    def id(self) -> str:
        return (
            f"/subscriptions/{self.subscription_id}/resourceGroups/{self.resource_group}"
            f"/providers/Microsoft.KeyVault/vaults/{self.name}"
        )

    def policy_for(self, object_id: str) -> Any | None:
        for entry in self.access_policies:
            if entry.object_id == object_id:
                return entry
        return None


class MockResourceState:
    """In-memory Azure state shared by the mock SDK clients.

    All operations are synchronous since this is test code.
    """

    def __init__(
        self,
        *,
        fail_on: dict[str, int] | None = None,
        pending: set[str] | None = None,
        subscriptions: dict[str, str] | None = None,
    ) -> None:
        """Initialize empty state.

        Args:
            fail_on: Operation name -> 1-based call number that fails with
                an HttpResponseError.
            pending: Operations whose pollers never reach a terminal state.
            subscriptions: Subscription id -> tenant id of the subscriptions
                visible to the caller. None makes every subscription visible.
        """
        self._groups: dict[str, MockResourceGroup] = {}
        self._vaults: dict[tuple[str, str], MockVault] = {}
        self._calls: list[tuple[str, str]] = []
        self._fail_on = dict(fail_on or {})
        self._pending = set(pending or ())
        self._subscriptions = (
            None
            if subscriptions is None
            else {
                sid.lower(): MockSubscription(subscription_id=sid, tenant_id=tid)
                for sid, tid in subscriptions.items()
            }
        )

        unknown = (set(self._fail_on) | self._pending) - set(OPERATIONS)
        if unknown:
            raise ValueError(f"Unknown mock operations: {sorted(unknown)}")

    # -------------------------------------------------------------------------
    # Call log and failure injection
    # -------------------------------------------------------------------------

    @property
    def calls(self) -> list[tuple[str, str]]:
        return self._calls.copy()

    def call_names(self) -> list[str]:
        return [operation for operation, _ in self._calls]

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _ in self._calls if name == operation)

    def record(self, operation: str, target: str) -> None:
        """Log a call and raise if a failure was injected for it."""
        self._calls.append((operation, target))
        if self._fail_on.get(operation) == self.call_count(operation):
            raise _http_error(
                f"Simulated failure in {operation} for '{target}'",
                status_code=409,
                code="Conflict",
            )

    def is_pending(self, operation: str) -> bool:
        return operation in self._pending

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def get_subscription(self, subscription_id: str) -> MockSubscription:
        if self._subscriptions is None:
            return MockSubscription(subscription_id=subscription_id)
        subscription = self._subscriptions.get(subscription_id.lower())
        if subscription is None:
            raise _http_error(
                f"The subscription '{subscription_id}' could not be found.",
                status_code=404,
                code="SubscriptionNotFound",
            )
        return subscription

    # -------------------------------------------------------------------------
    # Resource groups
    # -------------------------------------------------------------------------

    @property
    def group_names(self) -> list[str]:
        return list(self._groups)

    def get_group(self, name: str) -> MockResourceGroup | None:
        return self._groups.get(name)

    def put_group(self, group: MockResourceGroup) -> MockResourceGroup:
        existing = self._groups.get(group.name)
        if existing is not None:
            existing.tags = dict(group.tags)
            return existing
        self._groups[group.name] = group
        return group

    def delete_group(self, name: str) -> None:
        if name not in self._groups:
            raise ResourceNotFoundError(message=f"Resource group '{name}' could not be found.")
        del self._groups[name]
        for key in [k for k in self._vaults if k[0] == name]:
            del self._vaults[key]

    # -------------------------------------------------------------------------
    # Vaults
    # -------------------------------------------------------------------------

    @property
    def vault_names(self) -> list[str]:
        return [name for _, name in self._vaults]

    def get_vault(self, resource_group: str, name: str) -> MockVault | None:
        return self._vaults.get((resource_group, name))

    def require_vault(self, resource_group: str, name: str) -> MockVault:
        vault = self.get_vault(resource_group, name)
        if vault is None:
            raise ResourceNotFoundError(message=f"Vault '{name}' was not found.")
        return vault

    def put_vault(self, vault: MockVault) -> MockVault:
        if vault.resource_group not in self._groups:
            raise ResourceNotFoundError(
                message=f"Resource group '{vault.resource_group}' could not be found."
            )
        if any(
            name == vault.name and rg != vault.resource_group for rg, name in self._vaults
        ):
            raise _http_error(
                f"The vault name '{vault.name}' is already in use.",
                status_code=409,
                code="VaultAlreadyExists",
            )
        self._vaults[(vault.resource_group, vault.name)] = vault
        return vault

    def list_vaults(self, resource_group: str) -> list[MockVault]:
        if resource_group not in self._groups:
            raise ResourceNotFoundError(
                message=f"Resource group '{resource_group}' could not be found."
            )
        return [v for (rg, _), v in self._vaults.items() if rg == resource_group]

    def delete_vault(self, resource_group: str, name: str) -> None:
        self.require_vault(resource_group, name)
        del self._vaults[(resource_group, name)]

    def apply_access_policy_update(
        self, vault: MockVault, operation_kind: str, entries: list[Any]
    ) -> None:
        """Apply add/replace/remove the way Key Vault does, keyed by principal."""
        kind = operation_kind.lower()
        if kind == "replace":
            vault.access_policies = [copy.deepcopy(e) for e in entries]
            return

        for entry in entries:
            key = (entry.tenant_id.lower(), entry.object_id.lower())
            remaining = [
                e
                for e in vault.access_policies
                if (e.tenant_id.lower(), e.object_id.lower()) != key
            ]
            if kind == "add":
                remaining.append(copy.deepcopy(entry))
            elif kind != "remove":
                raise _http_error(f"Invalid operation kind: {operation_kind}", status_code=400)
            vault.access_policies = remaining

    def clear(self) -> None:
        self._groups.clear()
        self._vaults.clear()
        self._calls.clear()


class _MockLROPoller:
    """Mock Long-Running Operation poller.

    Immediately returns results unless marked pending, in which case it
    never reports done().
    """

    def __init__(self, result: Any, *, pending: bool = False) -> None:
        self._result = result
        self._pending = pending

    def result(self, timeout: float | None = None) -> Any:
        return None if self._pending else self._result

    def wait(self, timeout: float | None = None) -> None:
        pass

    def done(self) -> bool:
        return not self._pending

    def status(self) -> str:
        return "InProgress" if self._pending else "Succeeded"


class MockResourceClient:
    """Mock implementation of azure.mgmt.resource.ResourceManagementClient."""

    def __init__(self, state: MockResourceState, subscription_id: str) -> None:
        self._state = state
        self._subscription_id = subscription_id
        self.resource_groups = _MockResourceGroupsOperations(self)

    @property
    def subscription_id(self) -> str:
        return self._subscription_id


class _MockResourceGroupsOperations:
    def __init__(self, client: MockResourceClient) -> None:
        self._client = client
        self._state = client._state

    def create_or_update(self, resource_group_name: str, parameters: Any) -> MockResourceGroup:
        self._state.record("resource_groups.create_or_update", resource_group_name)
        return self._state.put_group(
            MockResourceGroup(
                name=resource_group_name,
                location=parameters.location,
                subscription_id=self._client.subscription_id,
                tags=dict(parameters.tags or {}),
            )
        )

    def begin_delete(self, resource_group_name: str) -> _MockLROPoller:
        operation = "resource_groups.begin_delete"
        self._state.record(operation, resource_group_name)
        if self._state.is_pending(operation):
            return _MockLROPoller(None, pending=True)
        self._state.delete_group(resource_group_name)
        return _MockLROPoller(None)


class MockKeyVaultClient:
    """Mock implementation of azure.mgmt.keyvault.KeyVaultManagementClient."""

    def __init__(self, state: MockResourceState, subscription_id: str) -> None:
        self._state = state
        self._subscription_id = subscription_id
        self.vaults = _MockVaultsOperations(self)

    @property
    def subscription_id(self) -> str:
        return self._subscription_id


class _MockVaultsOperations:
    def __init__(self, client: MockKeyVaultClient) -> None:
        self._client = client
        self._state = client._state

    def begin_create_or_update(
        self, resource_group_name: str, vault_name: str, parameters: Any
    ) -> _MockLROPoller:
        operation = "vaults.begin_create_or_update"
        self._state.record(operation, vault_name)
        properties = parameters.properties
        vault = self._state.put_vault(
            MockVault(
                name=vault_name,
                resource_group=resource_group_name,
                location=parameters.location,
                subscription_id=self._client.subscription_id,
                tenant_id=properties.tenant_id,
                sku=properties.sku.name,
                access_policies=list(properties.access_policies or []),
                enabled_for_deployment=properties.enabled_for_deployment,
                enabled_for_template_deployment=properties.enabled_for_template_deployment,
                network_acls=properties.network_acls,
                public_network_access=properties.public_network_access,
            )
        )
        return _MockLROPoller(vault, pending=self._state.is_pending(operation))

    def update_access_policy(
        self,
        resource_group_name: str,
        vault_name: str,
        operation_kind: str,
        parameters: Any,
    ) -> Any:
        self._state.record("vaults.update_access_policy", vault_name)
        vault = self._state.require_vault(resource_group_name, vault_name)
        self._state.apply_access_policy_update(
            vault, operation_kind, list(parameters.properties.access_policies)
        )
        return parameters

    def update(self, resource_group_name: str, vault_name: str, parameters: Any) -> MockVault:
        self._state.record("vaults.update", vault_name)
        vault = self._state.require_vault(resource_group_name, vault_name)
        properties = parameters.properties
        if properties.sku is not None:
            vault.sku = properties.sku.name
        if properties.access_policies is not None:
            vault.access_policies = list(properties.access_policies)
        for attr in (
            "enabled_for_deployment",
            "enabled_for_template_deployment",
            "network_acls",
            "public_network_access",
        ):
            value = getattr(properties, attr)
            if value is not None:
                setattr(vault, attr, value)
        return vault

    def list_by_resource_group(self, resource_group_name: str) -> Iterator[MockVault]:
        self._state.record("vaults.list_by_resource_group", resource_group_name)
        yield from self._state.list_vaults(resource_group_name)

    def delete(self, resource_group_name: str, vault_name: str) -> None:
        self._state.record("vaults.delete", vault_name)
        self._state.delete_vault(resource_group_name, vault_name)


class MockSubscriptionClient:
    """Mock implementation of azure.mgmt.resource.SubscriptionClient."""

    def __init__(self, state: MockResourceState) -> None:
        self._state = state
        self.subscriptions = _MockSubscriptionsOperations(self)


class _MockSubscriptionsOperations:
    def __init__(self, client: MockSubscriptionClient) -> None:
        self._state = client._state

    def get(self, subscription_id: str) -> MockSubscription:
        self._state.record("subscriptions.get", subscription_id)
        return self._state.get_subscription(subscription_id)
