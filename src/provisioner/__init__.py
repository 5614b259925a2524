"""Azure Key Vault lifecycle workflow with guaranteed resource-group cleanup."""

__version__ = "0.1.0"
