"""
FIFO lot ledger for a single instrument.

**Conceptual**: Every fill that adds to a position becomes a Lot with its own
entry price. When an offsetting trade arrives, the oldest lots are closed
first (first-in, first-out), each one realizing cash at its own entry price.
Whatever is still open at the end of a bar is marked to market against that
bar's close to produce open equity.

**Financial assumptions**:
  - All lots in the ledger share one sign (the sign of the net position).
    The engine flattens the ledger before opening on the other side.
  - Realized cash per closed slice:
        (exec_price - entry_price) * signed_quantity * big_point - |quantity| * cost
    so commission is charged per unit on every slice, partial or full.
  - Mark-to-market per lot:
        (reference_price - entry_price) * quantity * big_point

**Teaching note**: The ledger trusts its caller for the sign invariant. The
one thing it does check is that the engine never asks it to close more
units than it holds, and check_position() lets the engine assert after
every mutation that the signed sum of lots equals the position it tracks.
"""

from collections import deque
from dataclasses import dataclass
from typing import Iterator, List

from src.accounting.errors import LedgerInvariantError


@dataclass
class Lot:
    """
    An open slice of the position.

    Attributes:
        origin_index: Bar of the signal that opened this lot.
        quantity: Signed units still open. Positive = long, negative = short.
        entry_price: Execution price (the open of the bar after the signal).
    """
    origin_index: int
    quantity: int
    entry_price: float


@dataclass(frozen=True)
class ClosedTrade:
    """
    One realized slice of a lot.

    A single offsetting signal can close several lots, or part of one; each
    slice gets its own record so per-trade statistics can be computed later.

    Attributes:
        origin_index: Bar of the signal that opened the lot.
        exit_index: Bar at which the closing execution happened (None if the
                   caller did not supply it).
        quantity: Signed units closed (same sign as the lot).
        entry_price: Lot entry price.
        exit_price: Execution price of the close.
        commission: Commission charged on this slice.
        pnl: Realized cash for this slice, net of commission.
    """
    origin_index: int
    exit_index: int | None
    quantity: int
    entry_price: float
    exit_price: float
    commission: float
    pnl: float


class LotLedger:
    """
    Ordered collection of open lots, consumed from the front.

    Lots are only ever appended at the back and removed (or shrunk) at the
    front; they are never reordered.
    """

    def __init__(self):
        self._lots: deque[Lot] = deque()
        self.closed_trades: List[ClosedTrade] = []

    def __len__(self) -> int:
        return len(self._lots)

    def __iter__(self) -> Iterator[Lot]:
        return iter(self._lots)

    @property
    def is_empty(self) -> bool:
        return not self._lots

    def push(self, origin_index: int, quantity: int, price: float) -> None:
        """Append a new lot at the back of the ledger."""
        self._lots.append(Lot(origin_index=origin_index, quantity=quantity, entry_price=price))

    def net_quantity(self) -> int:
        """Signed sum of all open lot quantities."""
        return sum(lot.quantity for lot in self._lots)

    def check_position(self, position: int, bar_index: int) -> None:
        """
        Assert that the ledger agrees with an externally tracked position.

        Raises:
            LedgerInvariantError: If net_quantity() != position.
        """
        net = self.net_quantity()
        if net != position:
            raise LedgerInvariantError(
                f"Ledger holds net {net} units at bar {bar_index} but the tracked "
                f"position is {position}."
            )

    def consume_front(
        self,
        need_qty: int,
        exec_price: float,
        big_point: float,
        cost: float,
        exit_index: int | None = None,
    ) -> float:
        """
        Close `need_qty` units (a magnitude) starting from the oldest lot.

        **Functionally**:
          - While units are still needed, look at the front lot.
          - If it is larger than what remains, shrink it in place and stop.
          - Otherwise close it entirely, pop it, and continue with the next.
          - Each slice realizes (exec - entry) * signed_slice * big_point
            minus |slice| * cost.

        Args:
            need_qty: Units to close. The sign is ignored.
            exec_price: Execution price for the closing trade.
            big_point: Currency value of a one-point move per unit.
            cost: Commission per unit.
            exit_index: Bar of execution, recorded on the ClosedTrade entries.

        Returns:
            Realized cash from all slices.

        Raises:
            LedgerInvariantError: If the ledger runs out of lots before
                `need_qty` units have been closed.
        """
        remaining = abs(need_qty)
        realized = 0.0

        while remaining != 0:
            if not self._lots:
                raise LedgerInvariantError(
                    f"Asked to close {abs(need_qty)} units but the ledger ran out "
                    f"with {remaining} still needed."
                )

            lot = self._lots[0]
            lot_size = abs(lot.quantity)
            direction = 1 if lot.quantity > 0 else -1

            if lot_size > remaining:
                closed = direction * remaining
                gross, commission = self._realize(lot, closed, exec_price, big_point, cost, exit_index)
                realized = realized + gross - commission
                lot.quantity -= closed
                remaining = 0
            else:
                gross, commission = self._realize(lot, lot.quantity, exec_price, big_point, cost, exit_index)
                realized = realized + gross - commission
                remaining -= lot_size
                self._lots.popleft()

        return realized

    def liquidate_all(
        self,
        exec_price: float,
        big_point: float,
        cost: float,
        exit_index: int | None = None,
    ) -> float:
        """
        Close every lot in FIFO order and empty the ledger.

        Returns:
            Total realized cash (0.0 for an empty ledger).
        """
        realized = 0.0
        while self._lots:
            lot = self._lots.popleft()
            gross, commission = self._realize(lot, lot.quantity, exec_price, big_point, cost, exit_index)
            realized = realized + gross - commission
        return realized

    def mark_to_market(self, reference_price: float, big_point: float) -> float:
        """
        Unrealized value of all open lots against `reference_price`.

        Returns:
            Sum of (reference_price - entry_price) * quantity * big_point,
            0.0 when the ledger is empty.
        """
        equity = 0.0
        for lot in self._lots:
            equity += (reference_price - lot.entry_price) * lot.quantity * big_point
        return equity

    # ========================================================================
    # Internal helper methods
    # ========================================================================

    def _realize(
        self,
        lot: Lot,
        closed: int,
        exec_price: float,
        big_point: float,
        cost: float,
        exit_index: int | None,
    ) -> tuple[float, float]:
        # Callers accumulate gross then commission, in that order
        gross = (exec_price - lot.entry_price) * closed * big_point
        commission = abs(closed) * cost
        pnl = gross - commission
        self.closed_trades.append(
            ClosedTrade(
                origin_index=lot.origin_index,
                exit_index=exit_index,
                quantity=closed,
                entry_price=lot.entry_price,
                exit_price=exec_price,
                commission=commission,
                pnl=pnl,
            )
        )
        return gross, commission
