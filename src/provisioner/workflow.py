"""Vault lifecycle workflow with guaranteed resource-group cleanup.

The workflow runs these steps strictly in sequence, each blocking until
Azure reports a terminal state:

1. Resolve the subscription context
2. Create a resource group
3. Create vault #1 (premium SKU)
4. Grant the principal keys/all and secrets/get,list on vault #1
5. Broaden the grant to secrets/all and patch deployment and network
   settings on vault #1 in a single request
6. Create vault #2 in another region and grant it an independent policy
7. List the vaults in the group
8. Delete vault #1, then vault #2
9. Delete the resource group

Step 9 runs on every exit path once the group exists. A failure before the
group is created makes cleanup a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from .client import (
    AccessPolicyOperation,
    ResourceGroupHandle,
    VaultHandle,
    VaultResourceClient,
)
from .config import (
    PRIMARY_VAULT_NAME_PREFIX,
    RESOURCE_GROUP_NAME_PREFIX,
    SECONDARY_VAULT_NAME_PREFIX,
    Config,
)
from .errors import NotProvisionedError, ResourceOperationError, WorkflowError
from .models import (
    PRIMARY_GRANT,
    SECONDARY_GRANT,
    SECRETS_FULL_GRANT,
    AccessPolicyEntry,
    AccessPolicySet,
    NetworkRules,
    VaultDescriptor,
)
from .naming import create_random_name

logger = logging.getLogger(__name__)

MAX_RESOURCE_GROUP_NAME_LENGTH = 90


class WorkflowState(str, Enum):
    """States of a single workflow run."""

    INIT = "Init"
    GROUP_CREATING = "GroupCreating"
    GROUP_READY = "GroupReady"
    VAULT1_CREATING = "Vault1Creating"
    VAULT1_POLICY_UPDATING = "Vault1PolicyUpdating"
    VAULT1_PATCHING = "Vault1Patching"
    VAULT2_CREATING = "Vault2Creating"
    VAULT2_POLICY_UPDATING = "Vault2PolicyUpdating"
    LISTING = "Listing"
    DELETING = "Deleting"
    GROUP_DELETING = "GroupDeleting"
    CLEANUP = "Cleanup"
    DONE = "Done"


@dataclass
class WorkflowResult:
    """Outcome of one workflow run.

    error holds the primary failure. cleanup_error holds a failure of the
    resource-group deletion and never replaces error.
    """

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    subscription_id: str | None = None
    resource_group: ResourceGroupHandle | None = None
    primary_vault: VaultHandle | None = None
    secondary_vault: VaultHandle | None = None
    listed_vaults: list[str] = field(default_factory=list)
    states: list[WorkflowState] = field(default_factory=lambda: [WorkflowState.INIT])
    error: WorkflowError | None = None
    cleanup_error: WorkflowError | None = None
    cleanup_performed: bool = False

    @property
    def state(self) -> WorkflowState:
        return self.states[-1]

    @property
    def success(self) -> bool:
        return self.error is None and self.cleanup_error is None

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def transition(self, state: WorkflowState) -> None:
        if self.state == WorkflowState.DONE:
            raise RuntimeError(f"Workflow already finished, cannot enter {state.value}")
        logger.debug(f"Workflow state {self.state.value} -> {state.value}")
        self.states.append(state)

    def raise_for_error(self) -> None:
        """Re-raise the primary error, or the cleanup error if it is the only one."""
        if self.error is not None:
            raise self.error
        if self.cleanup_error is not None:
            raise self.cleanup_error


class VaultWorkflow:
    """Sequences the vault provisioning steps and guarantees teardown."""

    def __init__(self, client: VaultResourceClient, config: Config) -> None:
        self._client = client
        self._config = config

    def run(self) -> WorkflowResult:
        """Execute the workflow end to end.

        Workflow errors are recorded on the result rather than raised; call
        result.raise_for_error() to propagate them. Any other exception still
        triggers cleanup and then propagates.
        """
        result = WorkflowResult()

        try:
            with self._resource_group_scope(result) as group:
                self._provision(group, result)
        except WorkflowError as e:
            result.error = e
            logger.error(
                f"Vault workflow failed in state {self._failed_state(result).value}: {e}",
                extra={"error_type": type(e).__name__},
            )
        finally:
            result.end_time = datetime.now(UTC)
            if result.state != WorkflowState.DONE:
                result.transition(WorkflowState.DONE)

        logger.info(
            "Vault workflow finished",
            extra={
                "success": result.success,
                "resource_group": result.resource_group.name if result.resource_group else None,
                "listed_vaults": result.listed_vaults,
                "duration_seconds": result.duration_seconds,
            },
        )
        return result

    @staticmethod
    def _failed_state(result: WorkflowResult) -> WorkflowState:
        for state in reversed(result.states):
            if state not in (WorkflowState.CLEANUP, WorkflowState.DONE):
                return state
        return WorkflowState.INIT

    @contextmanager
    def _resource_group_scope(self, result: WorkflowResult) -> Iterator[ResourceGroupHandle]:
        """Create the resource group and delete it on every exit path.

        The handle exists only inside this scope: it is produced by the
        creation call and handed straight to the release in finally.
        """
        group: ResourceGroupHandle | None = None
        completed = False
        try:
            subscription = self._client.resolve_subscription()
            result.subscription_id = subscription.subscription_id

            result.transition(WorkflowState.GROUP_CREATING)
            name = create_random_name(
                RESOURCE_GROUP_NAME_PREFIX, max_length=MAX_RESOURCE_GROUP_NAME_LENGTH
            )
            logger.info(f"Creating resource group '{name}'")
            group = self._client.create_or_update_resource_group(
                name, self._config.resource_group_location
            )
            result.resource_group = group
            result.transition(WorkflowState.GROUP_READY)
            logger.info(
                f"Created resource group '{group.name}'",
                extra={"resource_group_id": group.resource_id, "location": group.location},
            )

            yield group
            completed = True
        finally:
            result.transition(
                WorkflowState.GROUP_DELETING if completed else WorkflowState.CLEANUP
            )
            self._release_resource_group(group, result)

    def _release_resource_group(
        self, group: ResourceGroupHandle | None, result: WorkflowResult
    ) -> None:
        """Delete the group once; failures are recorded on result, never raised."""
        target = group.resource_id if group else None
        if target:
            logger.info(f"Deleting resource group '{target}'")

        try:
            self._client.delete_resource_group(group)
        except NotProvisionedError:
            logger.info("Did not create any resources in Azure. No clean up is necessary")
            return
        except WorkflowError as e:
            result.cleanup_error = e
            logger.error(
                f"Failed to delete resource group '{target}': {e}",
                extra={"error_type": type(e).__name__, "secondary_failure": True},
            )
            return
        except Exception as e:
            logger.exception(
                f"Unexpected error deleting resource group '{target}'",
                extra={"error_type": type(e).__name__, "secondary_failure": True},
            )
            cleanup_error = ResourceOperationError(
                f"delete_resource_group failed for '{target}': {e}",
                operation="delete_resource_group",
            )
            cleanup_error.__cause__ = e
            result.cleanup_error = cleanup_error
            return

        result.cleanup_performed = True
        logger.info(f"Deleted resource group '{target}'")

    def _provision(self, group: ResourceGroupHandle, result: WorkflowResult) -> None:
        """Steps 3-8: everything that happens inside the resource group."""
        tenant_id = self._config.tenant_id
        object_id = self._config.object_id

        # Vault #1
        result.transition(WorkflowState.VAULT1_CREATING)
        primary = VaultDescriptor(
            name=create_random_name(PRIMARY_VAULT_NAME_PREFIX),
            location=self._config.primary_vault_location,
            tenant_id=tenant_id,
            sku="premium",
        )
        logger.info(f"Creating key vault '{primary.name}'")
        vault1 = self._client.create_or_update_vault(group, primary)
        result.primary_vault = vault1
        primary_policies = AccessPolicySet(primary.access_policies)
        logger.info(f"Created key vault '{vault1.name}'", extra={"location": vault1.location})

        result.transition(WorkflowState.VAULT1_POLICY_UPDATING)
        grant = AccessPolicyEntry(
            tenant_id=tenant_id, object_id=object_id, permissions=PRIMARY_GRANT
        )
        logger.info(f"Authorizing principal '{object_id}' on '{vault1.name}'")
        self._client.update_vault_access_policy(vault1, AccessPolicyOperation.ADD, [grant])
        primary_policies.add(grant)
        logger.info(f"Authorized principal '{object_id}' on '{vault1.name}'")

        result.transition(WorkflowState.VAULT1_PATCHING)
        primary_policies.add(grant.broadened(SECRETS_FULL_GRANT))
        patched = primary.with_updates(
            sku="premium",
            access_policies=primary_policies.entries(),
            enabled_for_deployment=True,
            enabled_for_template_deployment=True,
            network_rules=NetworkRules(default_action="Allow", bypass="AzureServices"),
            public_network_access="enabled",
        )
        logger.info(f"Updating key vault '{vault1.name}' to enable deployments and broaden access")
        self._client.patch_vault(vault1, patched)
        logger.info(f"Updated key vault '{vault1.name}'")

        # Vault #2
        result.transition(WorkflowState.VAULT2_CREATING)
        secondary = VaultDescriptor(
            name=create_random_name(SECONDARY_VAULT_NAME_PREFIX),
            location=self._config.secondary_vault_location,
            tenant_id=tenant_id,
            sku="premium",
        )
        vault2 = self._client.create_or_update_vault(group, secondary)
        result.secondary_vault = vault2
        logger.info(
            f"Created another key vault '{vault2.name}'", extra={"location": vault2.location}
        )

        result.transition(WorkflowState.VAULT2_POLICY_UPDATING)
        secondary_grant = AccessPolicyEntry(
            tenant_id=tenant_id, object_id=object_id, permissions=SECONDARY_GRANT
        )
        self._client.update_vault_access_policy(
            vault2, AccessPolicyOperation.ADD, [secondary_grant]
        )
        logger.info(f"Defined access policy on '{vault2.name}'")

        result.transition(WorkflowState.LISTING)
        logger.info("Listing key vaults...")
        for summary in self._client.list_vaults(group):
            result.listed_vaults.append(summary.name)
            logger.info(f"Key vault: {summary.name}", extra={"location": summary.location})
        logger.info("Listed key vaults", extra={"count": len(result.listed_vaults)})

        result.transition(WorkflowState.DELETING)
        logger.info("Deleting the key vaults")
        self._client.delete_vault(vault1)
        self._client.delete_vault(vault2)
        logger.info("Deleted the key vaults")
