"""Constants and configuration for the inheritance vault."""

from decimal import Decimal

WEI_PER_NATIVE = Decimal(10**18)
NATIVE_SYMBOL = "MON"

# Monad testnet. Use --rpc-url / ETH_RPC_URL to point elsewhere.
DEFAULT_CHAIN_ID = 10143
DEFAULT_RPC_URL = "https://testnet-rpc.monad.xyz"

# Monad rejects transactions priced below 100 gwei.
GAS_PRICE_WEI = 100_000_000_000
DEPLOY_GAS_LIMIT = 5_000_000
REDEEM_GAS_LIMIT = 3_000_000
DISABLE_GAS_LIMIT = 500_000

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ROOT_AUTHORITY = "0x" + "ff" * 32
# bytes32(0): single call, revert on failure (ERC-7579 "SingleDefault").
SINGLE_DEFAULT_MODE = "0x" + "00" * 32

# Latest timestamp accepted by the timestamp enforcer (Dec 31, 9999).
TIMESTAMP_MAX_BEFORE = 253402300799

# DelegationManager deployment on Monad testnet; enforcers come from the environment file.
DEFAULT_DELEGATION_MANAGER = "0x1324Ad9507DD8380F3a03f2E19E77De7E1e8d7Ca"

# Period bounds, in minutes.
MIN_PERIOD_MINUTES = 5
MAX_PERIOD_MINUTES = 365 * 24 * 60
SHORT_PERIOD_WARN_MINUTES = 60
LONG_PERIOD_WARN_MINUTES = 180 * 24 * 60

DEFAULT_CHECK_IN_PERIOD = 30
MAX_BENEFICIARIES = 10
MAX_NAME_LENGTH = 50
# 0.001 native
MIN_VAULT_BALANCE_WEI = 1_000_000_000_000_000

# A vault is flagged in health checks when its deadline is this close.
DEADLINE_WARNING_SECONDS = 3600

# Storage
STORAGE_DIR_NAME = "inheritance-vault"
STORAGE_KEY_PREFIX = "vault_"
STORAGE_FORMAT_VERSION = 1

# Environment variables
ENV_RPC_URL = "ETH_RPC_URL"
ENV_PRIVATE_KEY = "PRIVATE_KEY"
ENV_STORAGE = "VAULT_STORAGE"
ENV_STORAGE_DIR = "VAULT_STORAGE_DIR"
ENV_ENVIRONMENT_FILE = "VAULT_ENVIRONMENT_FILE"

# EIP-712 types used by the DelegationManager.
DELEGATION_EIP712_TYPES: dict[str, list[dict[str, str]]] = {
    "Delegation": [
        {"name": "delegate", "type": "address"},
        {"name": "delegator", "type": "address"},
        {"name": "authority", "type": "bytes32"},
        {"name": "caveats", "type": "Caveat[]"},
        {"name": "salt", "type": "uint256"},
    ],
    "Caveat": [
        {"name": "enforcer", "type": "address"},
        {"name": "terms", "type": "bytes"},
    ],
}
DELEGATION_DOMAIN_NAME = "DelegationManager"
DELEGATION_DOMAIN_VERSION = "1"

# ABI tuple type for a Delegation, as used by disableDelegation / permission contexts.
DELEGATION_ABI_TYPE = "(address,address,bytes32,(address,bytes,bytes)[],uint256,bytes)"

_DELEGATION_COMPONENTS: list[dict] = [
    {"name": "delegate", "type": "address", "internalType": "address"},
    {"name": "delegator", "type": "address", "internalType": "address"},
    {"name": "authority", "type": "bytes32", "internalType": "bytes32"},
    {
        "name": "caveats",
        "type": "tuple[]",
        "internalType": "struct Caveat[]",
        "components": [
            {"name": "enforcer", "type": "address", "internalType": "address"},
            {"name": "terms", "type": "bytes", "internalType": "bytes"},
            {"name": "args", "type": "bytes", "internalType": "bytes"},
        ],
    },
    {"name": "salt", "type": "uint256", "internalType": "uint256"},
    {"name": "signature", "type": "bytes", "internalType": "bytes"},
]

# Minimal ABI for the DelegationManager - only the functions the vault needs.
DELEGATION_MANAGER_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "disableDelegation",
        "stateMutability": "nonpayable",
        "inputs": [
            {
                "name": "_delegation",
                "type": "tuple",
                "internalType": "struct Delegation",
                "components": _DELEGATION_COMPONENTS,
            }
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "disabledDelegations",
        "stateMutability": "view",
        "inputs": [{"name": "_delegationHash", "type": "bytes32", "internalType": "bytes32"}],
        "outputs": [{"name": "", "type": "bool", "internalType": "bool"}],
    },
    {
        "type": "function",
        "name": "redeemDelegations",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_permissionContexts", "type": "bytes[]", "internalType": "bytes[]"},
            {"name": "_modes", "type": "bytes32[]", "internalType": "ModeCode[]"},
            {"name": "_executionCallDatas", "type": "bytes[]", "internalType": "bytes[]"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getDelegationHash",
        "stateMutability": "pure",
        "inputs": [
            {
                "name": "_input",
                "type": "tuple",
                "internalType": "struct Delegation",
                "components": _DELEGATION_COMPONENTS,
            }
        ],
        "outputs": [{"name": "", "type": "bytes32", "internalType": "bytes32"}],
    },
]

# SimpleFactory: deploys the account proxy via CREATE2.
SIMPLE_FACTORY_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "deploy",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_bytecode", "type": "bytes", "internalType": "bytes"},
            {"name": "_salt", "type": "bytes32", "internalType": "bytes32"},
        ],
        "outputs": [{"name": "addr_", "type": "address", "internalType": "address"}],
    },
]

# HybridDeleGator.initialize(owner, keyIds, xValues, yValues)
HYBRID_DELEGATOR_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "initialize",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_owner", "type": "address", "internalType": "address"},
            {"name": "_keyIds", "type": "string[]", "internalType": "string[]"},
            {"name": "_xValues", "type": "uint256[]", "internalType": "uint256[]"},
            {"name": "_yValues", "type": "uint256[]", "internalType": "uint256[]"},
        ],
        "outputs": [],
    },
]

ERC20_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address", "internalType": "address"},
            {"name": "amount", "type": "uint256", "internalType": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool", "internalType": "bool"}],
    },
]
