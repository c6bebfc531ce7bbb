"""
American odds arithmetic and wager outcome evaluation.

All functions here are pure: no database, no clock. Money is Decimal and
rounded to the cent; profit is truncated (never rounded up) so a payout
never exceeds what the quoted odds promise.

Examples:
    >>> calculate_payout(Decimal("100"), 150)
    Decimal('250.00')
    >>> calculate_payout(Decimal("100"), -200)
    Decimal('150.00')
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Optional

from wagerbook.models.enums import BetType, Selection, WagerStatus

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a number to a cent-precision Decimal."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def profit_factor(american_odds: int) -> Decimal:
    """
    Profit per unit staked for American odds.

    +150 -> 1.5 (profit 150 per 100 staked)
    -200 -> 0.5 (stake 200 to profit 100)
    """
    if american_odds == 0:
        raise ValueError("American odds cannot be 0")
    if american_odds > 0:
        return Decimal(american_odds) / Decimal(100)
    return Decimal(100) / Decimal(abs(american_odds))


def calculate_profit(stake: Decimal, american_odds: int) -> Decimal:
    """Profit on a winning wager, excluding the returned stake."""
    return (stake * profit_factor(american_odds)).quantize(CENT, rounding=ROUND_DOWN)


def calculate_payout(stake: Decimal, american_odds: int) -> Decimal:
    """Total credited on a win: stake plus profit."""
    return to_money(stake) + calculate_profit(to_money(stake), american_odds)


@dataclass(frozen=True)
class Outcome:
    """Settlement verdict for one wager."""
    status: WagerStatus
    payout: Decimal  # amount credited back to the balance (0 for a loss)


def grade_selection(
    bet_type: BetType,
    selection: Selection,
    line: Optional[float],
    home_score: int,
    away_score: int,
) -> WagerStatus:
    """
    Grade a selection against a final score.

    - moneyline: selected side's score vs opponent's; tie pushes
    - spread: ``selected score + line`` vs opponent's; the line is signed
      for the selected side (-3.5 favourite, +3.5 underdog); equality pushes
    - total: combined score vs line; over wins above, under below,
      equality pushes

    Returns:
        WON, LOST or PUSHED
    """
    if bet_type in (BetType.MONEYLINE, BetType.SPREAD):
        if selection == Selection.HOME:
            own, opponent = home_score, away_score
        elif selection == Selection.AWAY:
            own, opponent = away_score, home_score
        else:
            raise ValueError(f"Selection {selection.value} is not valid for {bet_type.value}")

        if bet_type == BetType.SPREAD:
            if line is None:
                raise ValueError("Spread wager has no line")
            own = own + line

        if own > opponent:
            return WagerStatus.WON
        if own < opponent:
            return WagerStatus.LOST
        return WagerStatus.PUSHED

    if bet_type == BetType.TOTAL:
        if line is None:
            raise ValueError("Total wager has no line")
        combined = home_score + away_score
        if combined == line:
            return WagerStatus.PUSHED
        if selection == Selection.OVER:
            return WagerStatus.WON if combined > line else WagerStatus.LOST
        if selection == Selection.UNDER:
            return WagerStatus.WON if combined < line else WagerStatus.LOST
        raise ValueError(f"Selection {selection.value} is not valid for {bet_type.value}")

    raise ValueError(f"Unknown bet type: {bet_type}")


def evaluate_wager(
    bet_type: BetType,
    selection: Selection,
    line: Optional[float],
    odds: int,
    stake: Decimal,
    home_score: Optional[int],
    away_score: Optional[int],
    result_confirmed: bool = True,
) -> Outcome:
    """
    Decide status and payout for a wager on a finished game.

    An unconfirmed finish (no trustworthy score) pushes every wager.
    """
    stake = to_money(stake)

    if not result_confirmed or home_score is None or away_score is None:
        return Outcome(WagerStatus.PUSHED, stake)

    status = grade_selection(bet_type, selection, line, home_score, away_score)
    if status == WagerStatus.WON:
        return Outcome(status, calculate_payout(stake, odds))
    if status == WagerStatus.PUSHED:
        return Outcome(status, stake)
    return Outcome(status, Decimal("0.00"))
