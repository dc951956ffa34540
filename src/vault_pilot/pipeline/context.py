from __future__ import annotations

from dataclasses import dataclass, field

from ..filters import FilterSpec
from ..gateway.base import BaseGateway
from ..models import AssetBalance, AssetDepositOptions, DepositOption
from ..ranking import RankedOptions
from ..state import AppState
from ..transactions import TransactionOutcome


@dataclass
class PipelineContext:
    state: AppState
    gateway: BaseGateway
    user_address: str
    filters: FilterSpec
    idle_assets: list[AssetBalance] | None = None
    candidates: list[AssetDepositOptions] | None = None
    failures: dict[str, Exception] = field(default_factory=dict)
    ranked: RankedOptions | None = None
    selected_symbol: str | None = None
    selected_option: DepositOption | None = None
    selected_balance: AssetBalance | None = None
    outcome: TransactionOutcome | None = None
    build_error: Exception | None = None

    @property
    def candidates_required(self) -> list[AssetDepositOptions]:
        if self.candidates is None:
            raise RuntimeError(
                "Deposit options have not been collected. Ensure collect_deposit_options() is called before accessing this property."
            )
        return self.candidates

    @property
    def ranked_required(self) -> RankedOptions:
        if self.ranked is None:
            raise RuntimeError(
                "Options have not been ranked. Ensure rank_options() is called before accessing this property."
            )
        return self.ranked

    @property
    def selected_option_required(self) -> DepositOption:
        if self.selected_option is None:
            raise RuntimeError(
                "No option has been selected. Ensure select_candidate() found an option before accessing this property."
            )
        return self.selected_option
