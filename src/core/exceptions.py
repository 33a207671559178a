"""Domain errors raised by the pipeline, onboarding and payout services."""


class DomainError(Exception):
    """Base class for business rule violations detected by a service."""

    code = "domain_error"

    def __init__(self, message: str = "", **context):
        self.message = message or (self.__doc__ or "").strip()
        self.context = context
        super().__init__(self.message)


class InvalidTransition(DomainError):
    """The requested pipeline stage is unknown or not allowed."""

    code = "invalid_transition"


class MissingReason(DomainError):
    """A pipeline cannot be marked LOST without a reason."""

    code = "missing_reason"


class IncompleteChecklist(DomainError):
    """All onboarding checklist items must be completed before going live."""

    code = "incomplete_checklist"


class InvalidChecklistUpdate(DomainError):
    """The onboarding checklist update is not permitted."""

    code = "invalid_checklist_update"


class InvalidPayout(DomainError):
    """The payout operation is not valid for this ledger entry."""

    code = "invalid_payout"


class DuplicateLedgerEntry(DomainError):
    """A ledger entry already exists for this merchant, reason and recipient."""

    code = "duplicate_ledger_entry"


class StoreConflict(DomainError):
    """Transient database conflict; the operation may be retried."""

    code = "store_conflict"
