"""Stepped price formation driven by net order flow."""

from dataclasses import dataclass
from decimal import Decimal

from onestonks.domain.models import TradeType


@dataclass(frozen=True)
class PricingConfig:
    """
    Price formation parameters.

    The price moves by change_per_step for every whole step_size units of
    net volume change. Downward moves stop at min_price, and never
    lift a price that already sits below it.
    """

    step_size: int = 5
    change_per_step: Decimal = Decimal("0.005")
    min_price: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if isinstance(self.step_size, bool) or not isinstance(self.step_size, int):
            raise ValueError(f"step_size must be an integer, got {self.step_size!r}")
        if self.step_size <= 0:
            raise ValueError(f"step_size must be positive, got {self.step_size}")
        if self.change_per_step < 0:
            raise ValueError(
                f"change_per_step must not be negative, got {self.change_per_step}"
            )
        if self.min_price <= 0:
            raise ValueError(f"min_price must be positive, got {self.min_price}")


DEFAULT_PRICING = PricingConfig()


def net_volume_after(net_volume_before: int, quantity: int, trade_type: TradeType) -> int:
    """Buys add demand, sells add supply."""
    if trade_type == TradeType.BUY:
        return net_volume_before + quantity
    return net_volume_before - quantity


def next_price(
    current_price: Decimal,
    net_volume_before: int,
    quantity: int,
    trade_type: TradeType,
    config: PricingConfig = DEFAULT_PRICING,
) -> Decimal:
    """
    Compute the price after a trade.

    The engine reacts to the sign of the net volume change, quantized into
    whole steps. A change smaller than one step leaves the price unchanged.

    Examples (step_size=5, change_per_step=0.005, price 100):
        buy 4  -> 100
        buy 5  -> 100.5
        buy 12 -> 101
        sell 5 -> 99.5
    """
    delta = net_volume_after(net_volume_before, quantity, trade_type) - net_volume_before
    steps = abs(delta) // config.step_size

    if delta > 0:
        return current_price * (1 + config.change_per_step * steps)

    if delta < 0:
        new_price = current_price * (1 - config.change_per_step * steps)
        # A price already under the floor may not be lifted by a sell.
        return max(new_price, min(config.min_price, current_price))

    return current_price
