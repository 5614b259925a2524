"""Azure API Mock for Integration Testing.

In-memory stand-ins for SubscriptionClient, ResourceManagementClient,
KeyVaultManagementClient and ClientSecretCredential so the vault workflow
can run end to end without Azure connectivity.

Key Features:
- In-memory resource groups and vaults
- Key Vault access-policy add/replace/remove semantics
- Call log for sequencing assertions
- Per-operation failure injection and never-completing pollers

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext(fail_on={"vaults.update": 1}) as ctx:
        result = VaultWorkflow(VaultResourceClient(credential, config), config).run()

        assert ctx.state.group_names == []
"""

from .context import MockAzureContext
from .credential import MockClientSecretCredential, create_mock_credential
from .resources import (
    MockKeyVaultClient,
    MockResourceClient,
    MockResourceState,
    MockSubscriptionClient,
)

__all__ = [
    "MockAzureContext",
    "MockClientSecretCredential",
    "MockKeyVaultClient",
    "MockResourceClient",
    "MockResourceState",
    "MockSubscriptionClient",
    "create_mock_credential",
]
