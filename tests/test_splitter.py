"""Tests for the split calculator."""

import random

import pytest

from splitledger.exceptions import (
    DuplicateParticipantError,
    EmptyParticipantsError,
    InvalidAmountError,
    InvalidShareError,
    SplitError,
    SplitMismatchError,
)
from splitledger.models import Expense, SplitStrategy
from splitledger.splitter import calculate_split, distribute_remainder


# Helper function for tests
def make_expense(
    total: int,
    participants: list[str],
    strategy: SplitStrategy = SplitStrategy.EQUAL,
    shares: dict[str, int] | None = None,
    payer: str | None = None,
) -> Expense:
    """Create an Expense for testing."""
    return Expense(
        id="exp-1",
        payer=payer or (participants[0] if participants else "A"),
        total_amount=total,
        strategy=strategy,
        participants=participants,
        shares=shares,
    )


class TestEqualSplit:
    """Test cases for EQUAL splits."""

    def test_even_split(self):
        """900 among three splits cleanly."""
        split = calculate_split(make_expense(900, ["A", "B", "C"]))

        assert split.shares == {"A": 300, "B": 300, "C": 300}

    def test_remainder_goes_to_first_participant(self):
        """100 among three gives the extra cent to the first participant."""
        split = calculate_split(make_expense(100, ["X", "Y", "Z"]))

        assert split.shares == {"X": 34, "Y": 33, "Z": 33}
        assert split.total == 100

    def test_remainder_follows_given_order(self):
        """Remainder goes to the first participants in list order, not sorted order."""
        split = calculate_split(make_expense(101, ["Z", "Y", "X"]))

        assert list(split.shares) == ["Z", "Y", "X"]
        assert split.shares == {"Z": 34, "Y": 34, "X": 33}

    def test_single_participant(self):
        """A single participant owes the whole amount."""
        split = calculate_split(make_expense(1234, ["A"]))

        assert split.shares == {"A": 1234}

    def test_total_smaller_than_participant_count(self):
        """2 cents among 5 gives 1 cent to the first two, 0 to the rest."""
        split = calculate_split(make_expense(2, ["A", "B", "C", "D", "E"]))

        assert list(split.shares.values()) == [1, 1, 0, 0, 0]

    def test_shares_ignored(self):
        """EQUAL ignores any shares passed along."""
        split = calculate_split(make_expense(90, ["A", "B"], shares={"A": 1}))

        assert split.shares == {"A": 45, "B": 45}

    def test_payer_not_participant(self):
        """The payer doesn't have to be a participant."""
        split = calculate_split(make_expense(60, ["B", "C"], payer="A"))

        assert split.payer == "A"
        assert split.shares == {"B": 30, "C": 30}


class TestExactSplit:
    """Test cases for EXACT splits."""

    def test_amounts_taken_as_is(self):
        """Explicit amounts are returned unchanged."""
        split = calculate_split(
            make_expense(
                1000,
                ["A", "B", "C"],
                SplitStrategy.EXACT,
                {"A": 100, "B": 650, "C": 250},
            )
        )

        assert split.shares == {"A": 100, "B": 650, "C": 250}

    def test_zero_share_allowed(self):
        """A participant may owe nothing."""
        split = calculate_split(
            make_expense(500, ["A", "B"], SplitStrategy.EXACT, {"A": 0, "B": 500})
        )

        assert split.shares == {"A": 0, "B": 500}

    def test_sum_mismatch(self):
        """Amounts that don't add up to the total are rejected."""
        with pytest.raises(SplitMismatchError) as exc_info:
            calculate_split(
                make_expense(1000, ["A", "B"], SplitStrategy.EXACT, {"A": 400, "B": 500})
            )

        assert exc_info.value.computed == 900
        assert exc_info.value.expected == 1000
        assert "900" in str(exc_info.value)
        assert "1000" in str(exc_info.value)

    def test_missing_share(self):
        """Every participant needs a share."""
        with pytest.raises(InvalidShareError, match="missing shares for: B"):
            calculate_split(
                make_expense(1000, ["A", "B"], SplitStrategy.EXACT, {"A": 1000})
            )

    def test_no_shares_at_all(self):
        """EXACT without shares is rejected."""
        with pytest.raises(InvalidShareError):
            calculate_split(make_expense(1000, ["A", "B"], SplitStrategy.EXACT))

    def test_share_for_non_participant(self):
        """Shares for members outside the participant list are rejected."""
        with pytest.raises(InvalidShareError, match="non-participants: C"):
            calculate_split(
                make_expense(
                    1000,
                    ["A", "B"],
                    SplitStrategy.EXACT,
                    {"A": 500, "B": 500, "C": 0},
                )
            )

    def test_negative_share(self):
        """Negative amounts are rejected even if the sum matches."""
        with pytest.raises(InvalidShareError, match="negative"):
            calculate_split(
                make_expense(
                    100, ["A", "B"], SplitStrategy.EXACT, {"A": -50, "B": 150}
                )
            )


class TestPercentageSplit:
    """Test cases for PERCENTAGE splits (basis points)."""

    def test_residual_goes_to_first_participant(self):
        """1000 at 33.33/33.33/33.34% floors to 333 each, first gets the residual."""
        split = calculate_split(
            make_expense(
                1000,
                ["A", "B", "C"],
                SplitStrategy.PERCENTAGE,
                {"A": 3333, "B": 3333, "C": 3334},
            )
        )

        assert split.shares == {"A": 334, "B": 333, "C": 333}
        assert split.total == 1000

    def test_exact_percentages(self):
        """Percentages that divide evenly need no residual."""
        split = calculate_split(
            make_expense(
                2000, ["A", "B"], SplitStrategy.PERCENTAGE, {"A": 7500, "B": 2500}
            )
        )

        assert split.shares == {"A": 1500, "B": 500}

    def test_percentages_must_total_100(self):
        """Basis points that don't total 10000 are rejected."""
        with pytest.raises(SplitMismatchError) as exc_info:
            calculate_split(
                make_expense(
                    1000, ["A", "B"], SplitStrategy.PERCENTAGE, {"A": 5000, "B": 4000}
                )
            )

        assert exc_info.value.computed == 9000
        assert exc_info.value.expected == 10000
        assert "basis points" in str(exc_info.value)

    def test_zero_percent_participant(self):
        """A 0% participant owes nothing."""
        split = calculate_split(
            make_expense(
                999,
                ["A", "B", "C"],
                SplitStrategy.PERCENTAGE,
                {"A": 0, "B": 5000, "C": 5000},
            )
        )

        # floors: 0, 499, 499 -> residual 1 goes to A (first in order)
        assert split.shares == {"A": 1, "B": 499, "C": 499}
        assert split.total == 999


class TestSplitValidation:
    """Test input validation shared by every strategy."""

    @pytest.mark.parametrize("total", [0, -100])
    def test_non_positive_total(self, total):
        """Totals must be positive."""
        with pytest.raises(InvalidAmountError):
            calculate_split(make_expense(total, ["A", "B"]))

    def test_empty_participants(self):
        """At least one participant is required."""
        with pytest.raises(EmptyParticipantsError):
            calculate_split(
                Expense(id="e", payer="A", total_amount=100, participants=[])
            )

    def test_duplicate_participant(self):
        """Participants must be unique."""
        with pytest.raises(DuplicateParticipantError) as exc_info:
            calculate_split(make_expense(100, ["A", "B", "A"]))

        assert exc_info.value.member == "A"

    def test_errors_share_base_class(self):
        """All split validation errors derive from SplitError."""
        with pytest.raises(SplitError):
            calculate_split(make_expense(0, ["A"]))


class TestSplitProperties:
    """Exactness and determinism over many random inputs."""

    def test_equal_split_always_reconciles(self):
        """EQUAL splits sum to the total for any total and participant count."""
        rng = random.Random(42)
        for _ in range(300):
            count = rng.randint(1, 200)
            total = rng.randint(1, 10_000_000)
            participants = [f"m{i}" for i in range(count)]

            split = calculate_split(make_expense(total, participants))

            assert split.total == total
            assert max(split.shares.values()) - min(split.shares.values()) <= 1

    def test_percentage_split_always_reconciles(self):
        """PERCENTAGE splits sum to the total for random basis-point mixes."""
        rng = random.Random(7)
        for _ in range(300):
            count = rng.randint(1, 50)
            cuts = sorted(rng.randint(0, 10000) for _ in range(count - 1))
            bps = [b - a for a, b in zip([0, *cuts], [*cuts, 10000])]
            participants = [f"m{i}" for i in range(count)]
            total = rng.randint(1, 1_000_000)

            split = calculate_split(
                make_expense(
                    total,
                    participants,
                    SplitStrategy.PERCENTAGE,
                    dict(zip(participants, bps)),
                )
            )

            assert split.total == total

    def test_split_is_deterministic(self):
        """Splitting the same expense twice gives identical results."""
        expense = make_expense(1001, ["C", "A", "B"])

        assert calculate_split(expense) == calculate_split(expense)


class TestDistributeRemainder:
    """Tests for the first-N remainder rule."""

    def test_bumps_first_entries(self):
        assert distribute_remainder([5, 5, 5, 5], 2) == [6, 6, 5, 5]

    def test_zero_remainder(self):
        assert distribute_remainder([5, 5], 0) == [5, 5]

    def test_remainder_too_large(self):
        with pytest.raises(ValueError):
            distribute_remainder([1, 1], 3)
