"""Network identifiers: short names, chain ids and CAIP-2 strings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

CAIP2_NAMESPACE = "eip155"

# Short network names as used in vaults.fyi paths -> EVM chain id
CHAIN_IDS: dict[str, int] = {
    "mainnet": 1,
    "optimism": 10,
    "bsc": 56,
    "gnosis": 100,
    "unichain": 130,
    "polygon": 137,
    "worldchain": 480,
    "hyperliquid": 999,
    "swellchain": 1923,
    "base": 8453,
    "plasma": 9745,
    "arbitrum": 42161,
    "celo": 42220,
    "avalanche": 43114,
    "ink": 57073,
    "linea": 59144,
    "berachain": 80094,
    "katana": 747474,
}

CHAIN_NAMES: dict[int, str] = {chain_id: name for name, chain_id in CHAIN_IDS.items()}

NETWORK_ALIASES: dict[str, str] = {
    "ethereum": "mainnet",
    "eth": "mainnet",
    "arbitrum-one": "arbitrum",
    "matic": "polygon",
}


class UnknownNetworkError(ValueError):
    """Raised when a network cannot be mapped to a known chain."""

    def __init__(
        self,
        network: Any,
        reason: str | None = None,
        *,
        action: Any = None,
        vault_address: str | None = None,
    ):
        self.network = network
        self.reason = reason
        self.action = action
        self.vault_address = vault_address
        message = f"Unknown network: {network!r}"
        if reason:
            message = f"{message} ({reason})"
        context = ", ".join(
            f"{k}={v}"
            for k, v in (
                ("action", getattr(action, "value", action)),
                ("vault", vault_address),
            )
            if v
        )
        if context:
            message = f"{message} [{context}]"
        super().__init__(message)


class NetworkForm(str, Enum):
    NAME = "name"
    CAIP2 = "caip2"


@dataclass(frozen=True)
class NetworkRef:
    """Canonical chain identity."""

    name: str
    chain_id: int

    @property
    def caip2(self) -> str:
        return f"{CAIP2_NAMESPACE}:{self.chain_id}"

    def render(self, form: NetworkForm) -> str:
        if form == NetworkForm.CAIP2:
            return self.caip2
        return self.name

    def __str__(self) -> str:
        return self.name


def _from_chain_id(chain_id: int, original: Any) -> NetworkRef:
    name = CHAIN_NAMES.get(chain_id)
    if name is None:
        raise UnknownNetworkError(original, f"chain id {chain_id} is not mapped")
    return NetworkRef(name=name, chain_id=chain_id)


def _from_string(value: str) -> NetworkRef:
    text = value.strip().lower()
    if not text:
        raise UnknownNetworkError(value, "empty network identifier")

    if ":" in text:
        namespace, _, reference = text.partition(":")
        if namespace != CAIP2_NAMESPACE:
            raise UnknownNetworkError(value, f"unsupported namespace {namespace!r}")
        try:
            chain_id = int(reference)
        except ValueError:
            raise UnknownNetworkError(value, "malformed CAIP-2 reference") from None
        return _from_chain_id(chain_id, value)

    if text.isdigit():
        return _from_chain_id(int(text), value)

    name = NETWORK_ALIASES.get(text, text)
    chain_id = CHAIN_IDS.get(name)
    if chain_id is None:
        raise UnknownNetworkError(value)
    return NetworkRef(name=name, chain_id=chain_id)


def _from_mapping(value: Mapping[str, Any]) -> NetworkRef:
    # API network objects: {"name": ..., "chainId": ..., "networkCaip": ...}
    for key in ("networkCaip", "caip", "name"):
        candidate = value.get(key)
        if isinstance(candidate, str) and candidate.strip():
            return _from_string(candidate)
    chain_id = value.get("chainId")
    if isinstance(chain_id, int) and not isinstance(chain_id, bool):
        return _from_chain_id(chain_id, value)
    raise UnknownNetworkError(value, "network object has no usable identifier")


def resolve_network(value: NetworkRef | str | int | Mapping[str, Any]) -> NetworkRef:
    """Resolve any accepted network surface form to a NetworkRef.

    Raises:
        UnknownNetworkError: If the name or chain id is not in the mapping
            table. There is no fallback to a default chain.
    """
    if isinstance(value, NetworkRef):
        return value
    if isinstance(value, bool):
        raise UnknownNetworkError(value, "not a network identifier")
    if isinstance(value, int):
        return _from_chain_id(value, value)
    if isinstance(value, str):
        return _from_string(value)
    if isinstance(value, Mapping):
        return _from_mapping(value)
    raise UnknownNetworkError(value, "not a network identifier")


def normalize_network(
    value: NetworkRef | str | int | Mapping[str, Any],
    form: NetworkForm = NetworkForm.NAME,
) -> str:
    """Render a network in the requested surface form.

    Idempotent: ``normalize_network(normalize_network(x, f), f)`` equals
    ``normalize_network(x, f)`` for both forms.
    """
    return resolve_network(value).render(form)


def network_key(value: Any) -> str | None:
    """Comparison key for filtering: canonical name, else the raw lowercase text."""
    if value is None:
        return None
    try:
        return resolve_network(value).name
    except UnknownNetworkError:
        if isinstance(value, str):
            return value.strip().lower() or None
        return None
