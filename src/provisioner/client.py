"""Resource Client: the Azure control-plane calls used by the workflow.

Wraps SubscriptionClient (subscription lookup), ResourceManagementClient
(resource groups) and KeyVaultManagementClient (vaults). Every mutating call
blocks until its long-running operation reaches a terminal state, and every
Azure SDK failure is translated into the workflow's error taxonomy:

- ClientAuthenticationError -> AuthenticationError
- HttpResponseError / AzureError -> ResourceOperationError
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError, ClientAuthenticationError, HttpResponseError
from azure.core.polling import LROPoller
from azure.mgmt.keyvault import KeyVaultManagementClient
from azure.mgmt.keyvault import models as kv_models
from azure.mgmt.resource import ResourceManagementClient, SubscriptionClient
from azure.mgmt.resource.resources.models import ResourceGroup

from .config import Config
from .errors import AuthenticationError, NotProvisionedError, ResourceOperationError
from .models import AccessPolicyEntry, VaultDescriptor
from .security import log_audit_event

logger = logging.getLogger(__name__)

ARM_TOKEN_SCOPE = "https://management.azure.com/.default"


class AccessPolicyOperation(str, Enum):
    """Kinds of access-policy update accepted by Key Vault."""

    ADD = "add"
    REPLACE = "replace"
    REMOVE = "remove"


@dataclass(frozen=True)
class SubscriptionContext:
    """Subscription the clients are bound to."""

    subscription_id: str
    tenant_id: str
    display_name: str | None = None
    state: str | None = None


@dataclass(frozen=True)
class ResourceGroupHandle:
    """A provisioned resource group."""

    name: str
    resource_id: str
    location: str


@dataclass(frozen=True)
class VaultHandle:
    """A provisioned Key Vault."""

    resource_group: str
    name: str
    resource_id: str
    location: str


@dataclass(frozen=True)
class VaultSummary:
    """One vault as returned by a listing."""

    name: str
    resource_id: str
    location: str


class VaultResourceClient:
    """Blocking facade over the Azure management SDKs.

    Not thread-safe; the workflow issues one call at a time.
    """

    def __init__(self, credential: TokenCredential, config: Config) -> None:
        """Initialize SDK clients.

        Args:
            credential: Azure credential for the service principal.
            config: Workflow configuration (subscription, timeouts).
        """
        self._credential = credential
        self._config = config
        self._timeout = config.operation_timeout_seconds

        self._resource_client = ResourceManagementClient(
            credential=credential,
            subscription_id=config.subscription_id,
        )
        self._subscription_client = SubscriptionClient(credential=credential)
        self._keyvault_client = KeyVaultManagementClient(
            credential=credential,
            subscription_id=config.subscription_id,
        )

    # -------------------------------------------------------------------------
    # Error translation and LRO waiting
    # -------------------------------------------------------------------------

    @contextmanager
    def _translate_errors(self, operation: str, target: str) -> Iterator[None]:
        """Map Azure SDK exceptions raised inside the block to workflow errors."""
        try:
            yield
        except ClientAuthenticationError as e:
            self._audit(operation, target, "failure")
            raise AuthenticationError(f"Authentication failed during {operation}: {e}") from e
        except HttpResponseError as e:
            self._audit(operation, target, "failure")
            error_code = e.error.code if e.error else None
            logger.error(
                f"Azure API error during {operation} on '{target}': {e.message}",
                extra={"status_code": e.status_code, "error_code": error_code},
            )
            raise ResourceOperationError(
                f"{operation} failed for '{target}' ({e.status_code}): {e.message}",
                operation=operation,
                status_code=e.status_code,
                error_code=error_code,
            ) from e
        except AzureError as e:
            self._audit(operation, target, "failure")
            logger.error(f"Azure error during {operation} on '{target}': {e}")
            raise ResourceOperationError(
                f"{operation} failed for '{target}': {e}",
                operation=operation,
            ) from e

    def _wait(self, poller: LROPoller[Any], operation: str, target: str) -> Any:
        """Block until the long-running operation is terminal.

        Raises:
            ResourceOperationError: If it is still running after the timeout.
        """
        result = poller.result(timeout=self._timeout)
        if not poller.done():
            raise ResourceOperationError(
                f"{operation} for '{target}' did not complete within {self._timeout}s "
                f"(status: {poller.status()})",
                operation=operation,
            )
        return result

    def _audit(self, action: str, target: str, result: str) -> None:
        if self._config.enable_audit_logging:
            event_type = action.split("_", 1)[-1] if "_" in action else action
            log_audit_event(event_type, target_resource=target, action=action, result=result)

    def _run(self, operation: str, target: str, call: Callable[[], Any]) -> Any:
        with self._translate_errors(operation, target):
            value = call()
        self._audit(operation, target, "success")
        return value

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    def resolve_subscription(self) -> SubscriptionContext:
        """Look up the configured subscription on the control plane.

        Raises:
            AuthenticationError: If no ARM token can be obtained.
            ResourceOperationError: If the subscription cannot be read,
                including when it does not exist or is not visible to the
                service principal.
        """
        subscription_id = self._config.subscription_id

        def lookup() -> Any:
            self._credential.get_token(ARM_TOKEN_SCOPE)
            return self._subscription_client.subscriptions.get(subscription_id=subscription_id)

        subscription = self._run("resolve_subscription", subscription_id, lookup)

        context = SubscriptionContext(
            subscription_id=subscription.subscription_id or subscription_id,
            tenant_id=subscription.tenant_id or self._config.tenant_id,
            display_name=subscription.display_name,
            state=getattr(subscription.state, "value", subscription.state),
        )
        logger.info(
            f"Resolved subscription '{context.display_name or context.subscription_id}'",
            extra={
                "subscription_id": context.subscription_id,
                "tenant_id": context.tenant_id,
                "subscription_state": context.state,
            },
        )
        return context

    # -------------------------------------------------------------------------
    # Resource groups
    # -------------------------------------------------------------------------

    def create_or_update_resource_group(self, name: str, location: str) -> ResourceGroupHandle:
        """Create the group, or update it in place if it already exists."""
        rg = self._run(
            "create_resource_group",
            name,
            lambda: self._resource_client.resource_groups.create_or_update(
                resource_group_name=name,
                parameters=ResourceGroup(location=location),
            ),
        )
        return ResourceGroupHandle(name=rg.name, resource_id=rg.id, location=rg.location)

    def delete_resource_group(self, group: ResourceGroupHandle | None) -> None:
        """Delete the group and everything in it, waiting for completion.

        Raises:
            NotProvisionedError: If no group was ever created.
        """
        if group is None:
            raise NotProvisionedError("No resource group was created")

        def delete() -> None:
            poller = self._resource_client.resource_groups.begin_delete(
                resource_group_name=group.name
            )
            self._wait(poller, "delete_resource_group", group.name)

        self._run("delete_resource_group", group.resource_id, delete)

    # -------------------------------------------------------------------------
    # Vaults
    # -------------------------------------------------------------------------

    def create_or_update_vault(
        self, group: ResourceGroupHandle, descriptor: VaultDescriptor
    ) -> VaultHandle:
        """Create the vault described by descriptor inside group."""

        def create() -> kv_models.Vault:
            poller = self._keyvault_client.vaults.begin_create_or_update(
                resource_group_name=group.name,
                vault_name=descriptor.name,
                parameters=descriptor.to_create_parameters(),
            )
            return self._wait(poller, "create_vault", descriptor.name)

        vault = self._run("create_vault", descriptor.name, create)
        return VaultHandle(
            resource_group=group.name,
            name=vault.name,
            resource_id=vault.id,
            location=vault.location,
        )

    def update_vault_access_policy(
        self,
        vault: VaultHandle,
        operation: AccessPolicyOperation,
        entries: Iterable[AccessPolicyEntry],
    ) -> None:
        """Apply an add/replace/remove access-policy update to vault."""
        parameters = kv_models.VaultAccessPolicyParameters(
            properties=kv_models.VaultAccessPolicyProperties(
                access_policies=[entry.to_sdk() for entry in entries],
            )
        )
        self._run(
            f"{operation.value}_access_policy",
            vault.name,
            lambda: self._keyvault_client.vaults.update_access_policy(
                resource_group_name=vault.resource_group,
                vault_name=vault.name,
                operation_kind=operation.value,
                parameters=parameters,
            ),
        )

    def patch_vault(self, vault: VaultHandle, descriptor: VaultDescriptor) -> None:
        """PATCH vault with the settings and access policies in descriptor."""
        self._run(
            "patch_vault",
            vault.name,
            lambda: self._keyvault_client.vaults.update(
                resource_group_name=vault.resource_group,
                vault_name=vault.name,
                parameters=descriptor.to_patch_parameters(),
            ),
        )

    def list_vaults(self, group: ResourceGroupHandle) -> Iterator[VaultSummary]:
        """Lazily yield the vaults in group, in provider order.

        The returned generator is one-shot; call again to re-enumerate.
        """
        with self._translate_errors("list_vaults", group.name):
            for vault in self._keyvault_client.vaults.list_by_resource_group(
                resource_group_name=group.name
            ):
                yield VaultSummary(name=vault.name, resource_id=vault.id, location=vault.location)

    def delete_vault(self, vault: VaultHandle) -> None:
        self._run(
            "delete_vault",
            vault.name,
            lambda: self._keyvault_client.vaults.delete(
                resource_group_name=vault.resource_group,
                vault_name=vault.name,
            ),
        )
