"""Transaction construction for deposit, redeem and claim-rewards actions."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from web3 import Web3

from .gateway.base import BaseGateway
from .gateway.errors import RemoteError
from .models import AssetBalance, DepositOption
from .networks import NetworkForm, UnknownNetworkError, normalize_network

logger = logging.getLogger(__name__)

_BASE_UNITS = re.compile(r"^[0-9]+$")


class ActionKind(str, Enum):
    DEPOSIT = "deposit"
    REDEEM = "redeem"
    CLAIM_REWARDS = "claim-rewards"


class TransactionBuildError(ValueError):
    """A transaction request could not be constructed.

    Fatal to one build attempt only. Carries the action, network and vault
    so the caller can report which attempt failed.
    """

    def __init__(
        self,
        message: str,
        action: ActionKind | str | None = None,
        network: str | None = None,
        vault_address: str | None = None,
    ):
        self.action = action
        self.network = network
        self.vault_address = vault_address
        context = ", ".join(
            f"{k}={v}"
            for k, v in (
                ("action", getattr(action, "value", action)),
                ("network", network),
                ("vault", vault_address),
            )
            if v
        )
        super().__init__(f"{message} [{context}]" if context else message)


class MissingAssetAddressError(TransactionBuildError):
    """No asset address given and none could be resolved from the chosen option."""


class InvalidAmountError(TransactionBuildError):
    """Amount is not a base-unit decimal string."""


class InvalidAddressError(TransactionBuildError):
    """An address is not a 20-byte hex address."""


@dataclass(frozen=True)
class TransactionRequest:
    """A fully validated action request, ready for the gateway."""

    action: ActionKind
    user_address: str
    network: str
    vault_address: str
    asset_address: str
    amount: str | None
    simulate: bool
    all: bool = False

    def path_params(self) -> dict[str, str]:
        return {
            "action": self.action.value,
            "userAddress": self.user_address,
            "network": self.network,
            "vaultAddress": self.vault_address,
        }

    def query_params(self) -> dict[str, str]:
        query = {
            "assetAddress": self.asset_address,
            "simulate": "true" if self.simulate else "false",
        }
        if self.action == ActionKind.REDEEM:
            query["all"] = "true" if self.all else "false"
        if self.amount is not None and not self.all:
            query["amount"] = self.amount
        return query


@dataclass(frozen=True)
class TransactionOutcome:
    """Result of asking the gateway for a transaction descriptor.

    A remote rejection of a well-formed request is reported here with
    ``success=False`` rather than raised.
    """

    success: bool
    request: TransactionRequest
    descriptor: Any = None
    message: str | None = None
    error: str | None = None
    status_code: int | None = None

    @classmethod
    def failed(cls, request: TransactionRequest, exc: RemoteError) -> "TransactionOutcome":
        return cls(
            success=False,
            request=request,
            message="Transaction generation failed",
            error=str(exc),
            status_code=exc.status_code,
        )

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "transaction": self.descriptor}
        return {"success": False, "message": self.message, "error": self.error}


def _checksum(
    field_name: str, value: str | None, action: ActionKind, network: str | None, vault: str | None
) -> str:
    try:
        return Web3.to_checksum_address(value)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        raise InvalidAddressError(
            f"Invalid {field_name}: {value!r}",
            action=action,
            network=network,
            vault_address=vault,
        ) from None


def validate_amount(
    amount: str | int | None,
    action: ActionKind,
    redeem_all: bool = False,
    network: str | None = None,
    vault_address: str | None = None,
) -> str | None:
    """Check that ``amount`` is a base-unit integer string.

    Amounts are never scaled: ``"1000000"`` is 1 USDC. Floats and fractional
    strings are rejected. An absent amount is accepted for claim-rewards and
    for redeem-all; redeem-all still rejects a malformed amount.
    """
    if amount is None:
        if action == ActionKind.CLAIM_REWARDS or (
            action == ActionKind.REDEEM and redeem_all
        ):
            return None
        raise InvalidAmountError(
            f"amount is required for {action.value}",
            action=action,
            network=network,
            vault_address=vault_address,
        )
    if isinstance(amount, int) and not isinstance(amount, bool):
        amount = str(amount)
    if not isinstance(amount, str) or not _BASE_UNITS.match(amount.strip()):
        raise InvalidAmountError(
            f"amount must be a non-negative integer string in base units, got {amount!r}",
            action=action,
            network=network,
            vault_address=vault_address,
        )
    return amount.strip()


class TransactionBuilder:
    """Builds deposit/redeem/claim-rewards requests and fetches descriptors.

    Network normalization, asset resolution and amount validation all
    complete in ``prepare`` before any gateway call is issued.
    """

    def __init__(self, gateway: BaseGateway, network_form: NetworkForm | None = None):
        self.gateway = gateway
        self.network_form = network_form or gateway.network_form

    def prepare(
        self,
        action: ActionKind | str,
        user_address: str,
        network: str,
        vault_address: str,
        *,
        simulate: bool,
        amount: str | int | None = None,
        asset_address: str | None = None,
        redeem_all: bool = False,
    ) -> TransactionRequest:
        """Validate inputs and produce a TransactionRequest.

        Raises:
            UnknownNetworkError: If the network's chain is not mapped.
            MissingAssetAddressError: If no asset address is available.
            InvalidAmountError: If the amount is malformed or missing.
            InvalidAddressError: If any address is malformed.
        """
        action = ActionKind(action)
        if redeem_all and action != ActionKind.REDEEM:
            raise TransactionBuildError(
                "redeem_all is only valid for redeem",
                action=action,
                network=network,
                vault_address=vault_address,
            )

        try:
            normalized_network = normalize_network(network, self.network_form)
        except UnknownNetworkError as e:
            raise UnknownNetworkError(
                e.network, e.reason, action=action, vault_address=vault_address
            ) from e

        if not asset_address:
            raise MissingAssetAddressError(
                "No asset address supplied or resolvable",
                action=action,
                network=normalized_network,
                vault_address=vault_address,
            )

        vault = _checksum("vault address", vault_address, action, normalized_network, vault_address)
        user = _checksum("user address", user_address, action, normalized_network, vault)
        asset = _checksum("asset address", asset_address, action, normalized_network, vault)
        checked_amount = validate_amount(
            amount, action, redeem_all, network=normalized_network, vault_address=vault
        )
        if redeem_all:
            # the whole position is redeemed; a validated amount is not forwarded
            checked_amount = None

        return TransactionRequest(
            action=action,
            user_address=user,
            network=normalized_network,
            vault_address=vault,
            asset_address=asset,
            amount=checked_amount,
            simulate=simulate,
            all=redeem_all,
        )

    def prepare_for_option(
        self,
        option: DepositOption,
        action: ActionKind | str,
        user_address: str,
        *,
        simulate: bool,
        amount: str | int | None = None,
        asset_address: str | None = None,
        balance: AssetBalance | None = None,
        redeem_all: bool = False,
    ) -> TransactionRequest:
        """Prepare a request against a ranked deposit option.

        The asset address comes from, in order: the explicit override, the
        option's own asset, the associated balance.
        """
        network = option.network or (balance.network if balance else None)
        if network is None:
            raise TransactionBuildError(
                "Deposit option has no network",
                action=action,
                vault_address=option.address,
            )
        resolved_asset = (
            asset_address
            or option.asset_address
            or (balance.address if balance else None)
        )
        return self.prepare(
            action,
            user_address,
            network,
            option.address,
            simulate=simulate,
            amount=amount,
            asset_address=resolved_asset,
            redeem_all=redeem_all,
        )

    async def fetch_descriptor(self, request: TransactionRequest) -> TransactionOutcome:
        """Ask the gateway for a descriptor; remote failures are returned, not raised."""
        logger.info(
            "Requesting %s %s transaction for vault %s on %s",
            "simulated" if request.simulate else "executable",
            request.action.value,
            request.vault_address,
            request.network,
        )
        try:
            descriptor = await self.gateway.build_transaction(request)
        except RemoteError as e:
            logger.warning(
                "Gateway rejected %s for vault %s on %s: %s",
                request.action.value,
                request.vault_address,
                request.network,
                e,
            )
            return TransactionOutcome.failed(request, e)
        return TransactionOutcome(success=True, request=request, descriptor=descriptor)

    async def build(
        self,
        action: ActionKind | str,
        user_address: str,
        network: str,
        vault_address: str,
        *,
        simulate: bool,
        amount: str | int | None = None,
        asset_address: str | None = None,
        redeem_all: bool = False,
    ) -> TransactionOutcome:
        request = self.prepare(
            action,
            user_address,
            network,
            vault_address,
            simulate=simulate,
            amount=amount,
            asset_address=asset_address,
            redeem_all=redeem_all,
        )
        return await self.fetch_descriptor(request)

    async def build_for_option(
        self,
        option: DepositOption,
        action: ActionKind | str,
        user_address: str,
        *,
        simulate: bool,
        amount: str | int | None = None,
        asset_address: str | None = None,
        balance: AssetBalance | None = None,
        redeem_all: bool = False,
    ) -> TransactionOutcome:
        request = self.prepare_for_option(
            option,
            action,
            user_address,
            simulate=simulate,
            amount=amount,
            asset_address=asset_address,
            balance=balance,
            redeem_all=redeem_all,
        )
        return await self.fetch_descriptor(request)
