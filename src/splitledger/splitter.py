"""Split calculator: turns one expense into exact per-participant shares."""

import logging
from typing import assert_never

from .exceptions import (
    DuplicateParticipantError,
    EmptyParticipantsError,
    InvalidAmountError,
    InvalidShareError,
    SplitMismatchError,
)
from .models import Expense, SplitResult, SplitStrategy
from .money import BASIS_POINTS_PER_WHOLE

logger = logging.getLogger(__name__)


def distribute_remainder(shares: list[int], remainder: int) -> list[int]:
    """
    Hand out a rounding remainder one unit at a time to the first entries.

    Args:
        shares: Floored shares, in participant order
        remainder: Minor units left over after flooring (0 <= remainder <= len)

    Returns:
        New list with the first ``remainder`` shares bumped by one
    """
    if not 0 <= remainder <= len(shares):
        raise ValueError(
            f"Remainder {remainder} cannot be spread over {len(shares)} shares"
        )
    return [share + 1 if i < remainder else share for i, share in enumerate(shares)]


def _validate_expense(expense: Expense) -> None:
    if expense.total_amount <= 0:
        raise InvalidAmountError(
            f"Expense {expense.id} total must be positive, got {expense.total_amount}"
        )
    if not expense.participants:
        raise EmptyParticipantsError(f"Expense {expense.id} has no participants")

    seen: set[str] = set()
    for member in expense.participants:
        if member in seen:
            raise DuplicateParticipantError(member)
        seen.add(member)


def _ordered_shares(expense: Expense) -> list[int]:
    """Pull explicit shares out in participant order, checking they line up."""
    shares = expense.shares or {}

    missing = [m for m in expense.participants if m not in shares]
    if missing:
        raise InvalidShareError(
            f"Expense {expense.id} is missing shares for: {', '.join(missing)}"
        )
    extra = sorted(set(shares) - set(expense.participants))
    if extra:
        raise InvalidShareError(
            f"Expense {expense.id} has shares for non-participants: "
            f"{', '.join(extra)}"
        )

    ordered = [shares[m] for m in expense.participants]
    negative = [m for m, value in zip(expense.participants, ordered) if value < 0]
    if negative:
        raise InvalidShareError(
            f"Expense {expense.id} has negative shares for: {', '.join(negative)}"
        )
    return ordered


def _split_equal(total: int, count: int) -> list[int]:
    base, remainder = divmod(total, count)
    return distribute_remainder([base] * count, remainder)


def _split_exact(expense: Expense) -> list[int]:
    amounts = _ordered_shares(expense)
    computed = sum(amounts)
    if computed != expense.total_amount:
        raise SplitMismatchError(computed=computed, expected=expense.total_amount)
    return amounts


def _split_percentage(expense: Expense) -> list[int]:
    basis_points = _ordered_shares(expense)
    computed = sum(basis_points)
    if computed != BASIS_POINTS_PER_WHOLE:
        raise SplitMismatchError(
            computed=computed, expected=BASIS_POINTS_PER_WHOLE, unit="basis points"
        )

    floored = [
        expense.total_amount * bps // BASIS_POINTS_PER_WHOLE for bps in basis_points
    ]
    # Each floor drops less than one unit, so the residual is < participant count
    residual = expense.total_amount - sum(floored)
    return distribute_remainder(floored, residual)


def calculate_split(expense: Expense) -> SplitResult:
    """
    Split an expense into per-participant owed amounts.

    Steps:
    1. Validate total, participants and (for EXACT/PERCENTAGE) shares
    2. Compute each participant's share in integer minor units
    3. Give any rounding remainder to the first participants in order

    The result always sums exactly to ``expense.total_amount``. The payer's
    own share is included if they are a participant.

    Args:
        expense: The expense to split

    Returns:
        SplitResult with one entry per participant, in participant order

    Raises:
        InvalidAmountError: If the total is not positive
        EmptyParticipantsError: If there are no participants
        DuplicateParticipantError: If a participant is listed twice
        InvalidShareError: If shares don't match the participant list
        SplitMismatchError: If explicit shares don't add up
    """
    _validate_expense(expense)

    strategy = expense.strategy
    if strategy is SplitStrategy.EQUAL:
        amounts = _split_equal(expense.total_amount, len(expense.participants))
    elif strategy is SplitStrategy.EXACT:
        amounts = _split_exact(expense)
    elif strategy is SplitStrategy.PERCENTAGE:
        amounts = _split_percentage(expense)
    else:
        assert_never(strategy)

    result = SplitResult(
        expense_id=expense.id,
        payer=expense.payer,
        total_amount=expense.total_amount,
        shares=dict(zip(expense.participants, amounts)),
    )

    # Final verification
    assert result.total == expense.total_amount, "Split does not reconcile"

    logger.debug(
        f"Split expense {expense.id} ({strategy.value}) "
        f"among {len(amounts)} participants"
    )
    return result
