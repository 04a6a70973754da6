"""Contract address resolution and contract handles."""

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from inheritance_vault.constants import (
    DEFAULT_CHAIN_ID,
    DEFAULT_DELEGATION_MANAGER,
    DELEGATION_MANAGER_MIN_ABI,
    ENV_ENVIRONMENT_FILE,
    SIMPLE_FACTORY_MIN_ABI,
)
from inheritance_vault.models import DeleGatorEnvironment

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover

# Accepted spellings in environment files, mapped to caveat names.
_ENFORCER_KEYS = {
    "TimestampEnforcer": "timestamp",
    "LimitedCallsEnforcer": "limitedCalls",
    "NativeTokenTransferAmountEnforcer": "nativeTokenTransferAmount",
    "ERC20TransferAmountEnforcer": "erc20TransferAmount",
}


def parse_environment(data: dict[str, Any], *, chain_id: int | None = None) -> DeleGatorEnvironment:
    """
    Build an environment from a JSON dict.

    Enforcers may be given either under `caveatEnforcers` or at the top level using the
    framework's contract names (e.g. `TimestampEnforcer`).
    """
    enforcers: dict[str, str] = {}
    nested = data.get("caveatEnforcers") or {}
    for key, address in {**data, **nested}.items():
        name = _ENFORCER_KEYS.get(key, key if key in _ENFORCER_KEYS.values() else None)
        if name and isinstance(address, str):
            enforcers[name] = address

    return DeleGatorEnvironment(
        chain_id=int(data.get("chainId", chain_id or DEFAULT_CHAIN_ID)),
        delegation_manager=str(data.get("DelegationManager", DEFAULT_DELEGATION_MANAGER)),
        caveat_enforcers=enforcers,
        simple_factory=data.get("SimpleFactory"),
        hybrid_implementation=data.get("HybridDeleGatorImpl"),
        proxy_creation_code=data.get("ERC1967ProxyCreationCode"),
    )


def load_environment(path: str | Path | None = None, *, chain_id: int | None = None) -> DeleGatorEnvironment:
    """Load the deployment from `path` or VAULT_ENVIRONMENT_FILE, else defaults without enforcers."""
    path = path or os.getenv(ENV_ENVIRONMENT_FILE)
    if not path:
        return DeleGatorEnvironment(chain_id=chain_id or DEFAULT_CHAIN_ID, delegation_manager=DEFAULT_DELEGATION_MANAGER)
    with Path(path).open("r", encoding="utf-8") as f:
        data = json.load(f)
    return parse_environment(data, chain_id=chain_id)


def delegation_manager_contract(w3: "Web3", environment: DeleGatorEnvironment):
    return w3.eth.contract(
        address=w3.to_checksum_address(environment.delegation_manager),
        abi=DELEGATION_MANAGER_MIN_ABI,
    )


def simple_factory_contract(w3: "Web3", environment: DeleGatorEnvironment):
    if not environment.simple_factory:
        raise ValueError("SimpleFactory address is not configured in the environment file")
    return w3.eth.contract(
        address=w3.to_checksum_address(environment.simple_factory),
        abi=SIMPLE_FACTORY_MIN_ABI,
    )
