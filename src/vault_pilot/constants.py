"""API endpoints and well-known addresses."""

DEFAULT_API_URL = "https://api.vaults.fyi"

DEFAULT_NETWORK = "mainnet"

# Example targets used by the endpoint checks
EXAMPLE_USER_ADDRESS = "0xdB79e7E9e1412457528e40db9fCDBe69f558777d"
EXAMPLE_VAULT_ADDRESS = "0x98C23E9d8f34FEFb1B7BD6a91B7FF122F4e16F5c"  # Aave USDC
EXAMPLE_ASSET_ADDRESS = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"  # USDC

# Descriptor values longer than this are cut in table output
DESCRIPTOR_VALUE_WIDTH = 75
VAULT_NAME_WIDTH = 18
