"""vault-pilot: yield discovery and transaction building on top of the vaults.fyi API."""

__version__ = "0.1.0"
