"""Custom exceptions for SplitLedger."""


class SplitLedgerError(Exception):
    """Base exception for all SplitLedger errors."""

    pass


class ConfigurationError(SplitLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


# ============================================================================
# Split errors
# ============================================================================


class SplitError(SplitLedgerError):
    """Base class for errors raised while splitting an expense."""

    pass


class InvalidAmountError(SplitError):
    """Raised when an expense total is not a positive integer."""

    pass


class EmptyParticipantsError(SplitError):
    """Raised when an expense has no participants."""

    pass


class DuplicateParticipantError(SplitError):
    """Raised when a participant appears more than once in an expense."""

    def __init__(self, member: str):
        self.member = member
        super().__init__(f"Participant '{member}' appears more than once")


class InvalidShareError(SplitError):
    """Raised when per-participant shares don't line up with the participants."""

    pass


class SplitMismatchError(SplitError):
    """Raised when explicit shares don't add up to the expected total."""

    def __init__(self, computed: int, expected: int, unit: str = "minor units"):
        self.computed = computed
        self.expected = expected
        super().__init__(
            f"Shares sum to {computed} {unit}, expected {expected} {unit}"
        )


# ============================================================================
# Ledger errors
# ============================================================================


class LedgerError(SplitLedgerError):
    """Base class for errors raised by the balance ledger."""

    pass


class SelfSettlementError(LedgerError):
    """Raised when a settlement names the same member on both sides."""

    def __init__(self, member: str):
        self.member = member
        super().__init__(f"Member '{member}' cannot settle with themselves")


class NonPositiveAmountError(LedgerError):
    """Raised when a settlement amount is zero or negative."""

    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"Settlement amount must be positive, got {amount}")


class ExpenseAlreadyRecordedError(LedgerError):
    """Raised when recording an expense id that already has ledger entries."""

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense '{expense_id}' is already recorded")


class SettlementAlreadyRecordedError(LedgerError):
    """Raised when recording a settlement id that already has ledger entries."""

    def __init__(self, settlement_id: str):
        self.settlement_id = settlement_id
        super().__init__(f"Settlement '{settlement_id}' is already recorded")


# ============================================================================
# Planner errors
# ============================================================================


class PlannerError(SplitLedgerError):
    """Base class for settlement planner errors."""

    pass


class UnbalancedLedgerError(PlannerError):
    """Raised when member positions don't sum to zero."""

    def __init__(self, residual: int):
        self.residual = residual
        super().__init__(
            f"Member positions sum to {residual}, expected 0. "
            f"The ledger is inconsistent; refusing to plan settlements."
        )


# ============================================================================
# Storage errors
# ============================================================================


class StorageError(SplitLedgerError):
    """Base class for storage lookups that fail."""

    pass


class ExpenseNotFoundError(StorageError):
    """Raised when an expense doesn't exist in the database."""

    def __init__(self, group_id: str, expense_id: str):
        self.group_id = group_id
        self.expense_id = expense_id
        super().__init__(f"Expense '{expense_id}' not found in group '{group_id}'")


class SettlementNotFoundError(StorageError):
    """Raised when a settlement doesn't exist in the database."""

    def __init__(self, group_id: str, settlement_id: str):
        self.group_id = group_id
        self.settlement_id = settlement_id
        super().__init__(
            f"Settlement '{settlement_id}' not found in group '{group_id}'"
        )
