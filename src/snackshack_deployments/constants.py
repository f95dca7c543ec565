"""Configuration constants for snackshack-deployments."""

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Fully qualified link symbol of the shared math library
SQRT_MATH_LINK = "contracts/lib/SqrtMath.sol:SqrtMath"

# Seconds to wait after a confirmed transaction before the next one
DEFAULT_QUIESCENCE_INTERVAL = 10.0

# Seconds between receipt polls while waiting for a confirmation
RECEIPT_POLL_LATENCY = 0.5

# Network configuration; timeouts follow the hardhat network settings
NETWORK_CONFIG = {
    "mainnet": {
        "chain_id": 1,
        "chain_name": "Ethereum Mainnet",
        "block_explorer_url": "https://etherscan.io",
        "alchemy_url": "https://eth-mainnet.alchemyapi.io/v2/{api_key}",
        "default_rpc_env": "MAINNET_RPC_URL",
        "private_key_env": "PRIVATE_KEY_MAINNET",
        "confirmation_timeout": 100.0,
        "poa": False,
    },
    "rinkeby": {
        "chain_id": 4,
        "chain_name": "Rinkeby",
        "block_explorer_url": "https://rinkeby.etherscan.io",
        "alchemy_url": "https://eth-rinkeby.g.alchemy.com/v2/{api_key}",
        "default_rpc_env": "RINKEBY_RPC_URL",
        "private_key_env": "PRIVATE_KEY_RINKEBY",
        "confirmation_timeout": 300.0,
        "poa": True,  # Clique extraData
    },
}

# Externally owned dependencies supplied by each environment
EXTERNAL_ADDRESSES = {
    "mainnet": {
        "factory": "0xb16c1342E617A5B6E4b631EB114483FDB289c0A4",
        "linear_curve": "0x5B6aC51d9B1CeDE0068a1B26533CAce807f883Ee",
        "exponential_curve": "0x432f962D8209781da23fB37b6B59ee15dE7d9841",
        "sudo_inu_nft": "0xa78c124b4f7368adde6a74d32ed9c369fe016f20",
        "snack": "0x2b8a8845b9bbb8b5beef1d95ef6a60701d867142",
        "xmon_snack_lp": "0x096c24c5bc54a2714d5db90ea46d8c4140aebe5d",
    },
    "rinkeby": {
        "factory": "0xcB1514FE29db064fa595628E0BFFD10cdf998F33",
        "linear_curve": "0x3764b9FE584719C4570725A2b5A2485d418A186E",
        "exponential_curve": "0xBc6760B11e433D25aAf5c8fCBC6cE99b14aC5D52",
        "sudo_test_nft": "0x09972358feEb111C0E1388161C3FA5e0Cd220A6B",
    },
}

# Enough of the ERC-20 metadata interface for progress reads on any token
ERC20_METADATA_ABI = [
    {
        "inputs": [],
        "name": "name",
        "outputs": [{"internalType": "string", "name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "symbol",
        "outputs": [{"internalType": "string", "name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
]
