"""Settlement planner: turns net balances into a short list of payments."""

import heapq
import logging
from collections.abc import Iterable, Mapping

from .exceptions import UnbalancedLedgerError
from .models import PairBalance, Transaction

logger = logging.getLogger(__name__)

DEFAULT_EXACT_MAX_MEMBERS = 12


def net_positions(balances: Iterable[PairBalance]) -> dict[str, int]:
    """
    Fold pairwise balances into one position per member.

    A positive position means the group owes the member. Members whose
    position nets to zero are still included if they appear in a pair.

    Args:
        balances: Pair balances, positive meaning member_b owes member_a

    Returns:
        Mapping of member to position, ordered by member
    """
    positions: dict[str, int] = {}
    for balance in balances:
        positions[balance.member_a] = (
            positions.get(balance.member_a, 0) + balance.amount
        )
        positions[balance.member_b] = (
            positions.get(balance.member_b, 0) - balance.amount
        )
    return dict(sorted(positions.items()))


def _greedy_plan(positions: Mapping[str, int]) -> list[Transaction]:
    """Match the largest creditor with the largest debtor until all are settled.

    Ties on amount go to the lexically smaller member id. Each step settles
    at least one side completely, so n members need at most n - 1 payments.
    """
    # Both heaps pop the largest magnitude first, then the smallest member id
    creditors = [(-amount, member) for member, amount in positions.items() if amount > 0]
    debtors = [(amount, member) for member, amount in positions.items() if amount < 0]
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    transactions: list[Transaction] = []
    while creditors and debtors:
        neg_credit, creditor = heapq.heappop(creditors)
        neg_debt, debtor = heapq.heappop(debtors)
        credit, debt = -neg_credit, -neg_debt

        amount = min(credit, debt)
        transactions.append(
            Transaction(from_member=debtor, to_member=creditor, amount=amount)
        )

        if credit > amount:
            heapq.heappush(creditors, (-(credit - amount), creditor))
        if debt > amount:
            heapq.heappush(debtors, (-(debt - amount), debtor))

    assert not creditors and not debtors, "Positions did not net to zero"
    return transactions


def _zero_sum_groups(amounts: list[int]) -> list[list[int]]:
    """
    Partition indices into the largest number of disjoint zero-sum groups.

    Bitmask DP: best[mask] is the largest count of zero-sum prefixes over
    any ordering of the members in ``mask``. Walking the optimal ordering
    and cutting at each zero prefix sum yields the groups.

    Args:
        amounts: Non-zero positions summing to zero

    Returns:
        Lists of indices into ``amounts``; each list sums to zero
    """
    n = len(amounts)
    size = 1 << n

    sums = [0] * size
    for mask in range(1, size):
        low = mask & -mask
        sums[mask] = sums[mask ^ low] + amounts[low.bit_length() - 1]

    best = [0] * size
    for mask in range(1, size):
        top = 0
        rest = mask
        while rest:
            low = rest & -rest
            top = max(top, best[mask ^ low])
            rest ^= low
        best[mask] = top + (1 if sums[mask] == 0 else 0)

    # Peel members off the full set; the peel order reversed is the ordering
    removed: list[int] = []
    mask = size - 1
    while mask:
        zero = 1 if sums[mask] == 0 else 0
        for i in range(n):
            bit = 1 << i
            if mask & bit and best[mask ^ bit] + zero == best[mask]:
                removed.append(i)
                mask ^= bit
                break

    groups: list[list[int]] = []
    current: list[int] = []
    running = 0
    for i in reversed(removed):
        current.append(i)
        running += amounts[i]
        if running == 0:
            groups.append(current)
            current = []
    return groups


def _exact_plan(positions: Mapping[str, int]) -> list[Transaction]:
    members = [m for m, amount in sorted(positions.items()) if amount != 0]
    amounts = [positions[m] for m in members]

    transactions: list[Transaction] = []
    for group in _zero_sum_groups(amounts):
        transactions.extend(_greedy_plan({members[i]: amounts[i] for i in group}))
    return transactions


def plan_from_positions(
    positions: Mapping[str, int],
    exact: bool = False,
    exact_max_members: int = DEFAULT_EXACT_MAX_MEMBERS,
) -> list[Transaction]:
    """
    Compute payments that bring every member's position to zero.

    Args:
        positions: Member -> position (positive means the group owes them)
        exact: Use the exact minimal-count solver for small groups
        exact_max_members: Largest number of non-zero members the exact
            solver will take on before falling back to greedy

    Returns:
        Ordered list of transactions, each with a positive amount

    Raises:
        UnbalancedLedgerError: If positions don't sum to zero
    """
    residual = sum(positions.values())
    if residual != 0:
        raise UnbalancedLedgerError(residual)

    active = sum(1 for amount in positions.values() if amount != 0)

    if exact and active > exact_max_members:
        logger.warning(
            f"{active} members with open positions exceeds exact solver limit "
            f"({exact_max_members}); falling back to greedy plan"
        )
        exact = False

    transactions = _exact_plan(positions) if exact else _greedy_plan(positions)

    logger.info(
        f"Planned {len(transactions)} transactions for {active} members "
        f"({'exact' if exact else 'greedy'})"
    )
    return transactions


def plan_settlement(
    net_balances: Iterable[PairBalance],
    exact: bool = False,
    exact_max_members: int = DEFAULT_EXACT_MAX_MEMBERS,
) -> list[Transaction]:
    """
    Compute the settlement plan for a group's net balances.

    Pairwise balances are first reduced to one position per member, then
    creditors and debtors are matched. Greedy mode never emits more than
    n - 1 transactions for n members with non-zero positions; exact mode
    emits the minimum possible.

    Args:
        net_balances: Output of ``BalanceLedger.all_net_balances()``
        exact: Use the exact minimal-count solver for small groups
        exact_max_members: Size limit for the exact solver

    Returns:
        Ordered list of transactions

    Raises:
        UnbalancedLedgerError: If positions don't sum to zero
    """
    return plan_from_positions(
        net_positions(net_balances),
        exact=exact,
        exact_max_members=exact_max_members,
    )
