"""
Main Orchestrator for the Money Ledger

This module ties together all the components and is the single entry point
the UI layer talks to. Every public operation follows the same flow:

    validate -> mutate (atomically) -> audit -> liquidity check -> persist

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is mutated unless the engine accepted the whole operation
- Every mutation and every rejection is audited
- Persistence is a trailing step; a failed save is reported, and the
  in-memory ledger keeps the completed mutation
- Importing or clearing data requires explicit confirmation

After each successful call the UI re-reads the store and the reports to
refresh its views.
"""

import datetime as dt
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Iterator, Optional
from uuid import UUID

import structlog

from money_ledger.audit import AuditLogger, create_correlation_id
from money_ledger.config import AppSettings, Settings, get_settings
from money_ledger.engine import (
    InvestmentEngine,
    TransactionEngine,
    is_underfunded,
    recalculate_all,
    simulate_withdrawal,
    total_liquid_obligations,
)
from money_ledger.engine.inputs import require_amount
from money_ledger.engine.investments import ShareInput
from money_ledger.engine.transactions import LoanKindInput, PersonKindInput
from money_ledger.errors import (
    ImportNotConfirmedError,
    InvalidInputError,
    LedgerError,
)
from money_ledger.models.audit import AuditEvent, AuditEventBuilder
from money_ledger.models.ledger import (
    AccountTransaction,
    Allocation,
    ContributorShare,
    Investment,
    LoanTransactionKind,
    Loan,
    MoneyInput,
    Person,
    PersonTransactionKind,
    ValidationResult,
)
from money_ledger.models.reports import (
    DashboardSummary,
    InvestmentDetail,
    LoanStatement,
    PersonStatement,
    WithdrawalSimulation,
)
from money_ledger.queries import LedgerReports
from money_ledger.services.snapshot_io import export_snapshot, load_snapshot
from money_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
    JsonFileSnapshotStorage,
    JsonLinesAuditStorage,
    SnapshotStorageInterface,
    StorageError,
)
from money_ledger.store.ledger_store import LedgerStore
from money_ledger.validation import SnapshotValidator


logger = structlog.get_logger(__name__)

CLEAR_CONFIRMATION = "DELETE"


class LedgerService:
    """
    Facade over the ledger engine.

    Owns one LedgerStore for its whole life; import and reset swap the
    store's contents, never the store object, so the engines stay bound.
    """

    def __init__(
        self,
        store: Optional[LedgerStore] = None,
        snapshot_storage: Optional[SnapshotStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        validator: Optional[SnapshotValidator] = None,
    ):
        self._settings = settings or get_settings().app
        self.store = store or LedgerStore.empty(self._settings.default_account_name)
        self._snapshots = snapshot_storage
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or SnapshotValidator()

        self._investments = InvestmentEngine(self.store)
        self._transactions = TransactionEngine(self.store, self._investments)
        self._reports = LedgerReports(
            self.store,
            self._settings.recent_activity_limit,
            self._settings.currency_code,
        )

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    @contextmanager
    def _mutation(self, operation: str, track_closures: bool = True) -> Iterator[UUID]:
        """
        Wrap one public mutation.

        Rejections are audited and re-raised unchanged. On success, closed
        investments are audited, the liquidity check runs and the ledger is
        saved.
        """
        correlation_id = create_correlation_id()
        open_before = {i.id: i.name for i in self.store.investments} if track_closures else {}
        try:
            yield correlation_id
        except LedgerError as e:
            self._log(AuditEventBuilder.operation_rejected(operation, e), correlation_id)
            raise

        for investment_id, name in open_before.items():
            if self.store.find_investment(investment_id) is None:
                self._log(AuditEventBuilder.investment_closed(investment_id, name), correlation_id)
        self._check_liquidity(correlation_id)
        self.save(correlation_id)

    def _log(self, event: AuditEvent, correlation_id: Optional[UUID] = None) -> None:
        self._audit.log(event, correlation_id=correlation_id)

    def _check_liquidity(self, correlation_id: Optional[UUID] = None) -> None:
        if is_underfunded(self.store):
            self._log(
                AuditEventBuilder.liquidity_alert(
                    self.store.account.balance,
                    total_liquid_obligations(self.store),
                ),
                correlation_id,
            )

    def save(self, correlation_id: Optional[UUID] = None) -> None:
        """
        Persist the whole ledger, if a snapshot backend is configured.

        Raises:
            StorageError: the save failed; the in-memory ledger is unchanged
        """
        if self._snapshots is None:
            return
        try:
            location = self._snapshots.save_snapshot(self.store.to_snapshot().to_json())
        except StorageError as e:
            self._log(AuditEventBuilder.snapshot_save_failed(str(e)), correlation_id)
            raise
        self._log(AuditEventBuilder.snapshot_saved(location), correlation_id)

    def load(self) -> bool:
        """
        Replace the in-memory ledger with the saved snapshot, if there is one.

        Returns True if a snapshot was loaded.
        """
        if self._snapshots is None:
            return False
        text = self._snapshots.load_snapshot()
        if text is None:
            return False
        loaded, result = load_snapshot(text, self._settings.default_account_name, self._validator)
        self.store.replace_with(loaded)
        recalculate_all(self.store)
        logger.info("ledger_loaded", people=len(self.store.people), warnings=len(result.warnings))
        return True

    # -------------------------------------------------------------------------
    # People and loans
    # -------------------------------------------------------------------------

    def add_person(self, name: str, notes: str = "") -> Person:
        with self._mutation("add_person") as cid:
            person = self._transactions.add_person(name, notes)
            self._log(AuditEventBuilder.person_added(person.id, person.name), cid)
        return person

    def delete_person(self, person_id: str) -> Person:
        with self._mutation("delete_person") as cid:
            person = self._transactions.delete_person(person_id)
            self._log(AuditEventBuilder.person_deleted(person.id, person.name), cid)
        return person

    def add_loan(self, name: str) -> Loan:
        with self._mutation("add_loan") as cid:
            loan = self._transactions.add_loan(name)
            self._log(AuditEventBuilder.loan_added(loan.id, loan.name), cid)
        return loan

    def delete_loan(self, loan_id: str) -> Loan:
        with self._mutation("delete_loan") as cid:
            loan = self._transactions.delete_loan(loan_id)
            self._log(AuditEventBuilder.loan_deleted(loan.id, loan.name), cid)
        return loan

    # -------------------------------------------------------------------------
    # Person transactions
    # -------------------------------------------------------------------------

    def apply_person_transaction(
        self,
        kind: PersonKindInput,
        person_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
        investment_name: Optional[str] = None,
    ) -> str:
        with self._mutation("apply_person_transaction") as cid:
            transaction_id = self._transactions.apply_person_transaction(
                kind, person_id, amount, date, notes, investment_name,
            )
            self._log(AuditEventBuilder.transaction_applied(
                "person", person_id, PersonTransactionKind(kind).value, transaction_id,
                self._amount_of(amount),
            ), cid)
        return transaction_id

    def reverse_person_transaction(
        self,
        kind: PersonKindInput,
        person_id: str,
        transaction_id: str,
    ) -> None:
        with self._mutation("reverse_person_transaction") as cid:
            self._transactions.reverse_person_transaction(kind, person_id, transaction_id)
            self._log(AuditEventBuilder.transaction_reversed(
                "person", person_id, PersonTransactionKind(kind).value, transaction_id,
            ), cid)

    def edit_person_transaction(
        self,
        kind: PersonKindInput,
        person_id: str,
        transaction_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
        investment_name: Optional[str] = None,
    ) -> str:
        with self._mutation("edit_person_transaction") as cid:
            new_id = self._transactions.edit_person_transaction(
                kind, person_id, transaction_id, amount, date, notes, investment_name,
            )
            self._log(AuditEventBuilder.transaction_edited(
                "person", person_id, PersonTransactionKind(kind).value, new_id,
                self._amount_of(amount),
            ), cid)
        return new_id

    # -------------------------------------------------------------------------
    # Loan transactions
    # -------------------------------------------------------------------------

    def apply_loan_transaction(
        self,
        kind: LoanKindInput,
        loan_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
    ) -> str:
        with self._mutation("apply_loan_transaction") as cid:
            transaction_id = self._transactions.apply_loan_transaction(
                kind, loan_id, amount, date, notes,
            )
            self._log(AuditEventBuilder.transaction_applied(
                "loan", loan_id, LoanTransactionKind(kind).value, transaction_id,
                self._amount_of(amount),
            ), cid)
        return transaction_id

    def reverse_loan_transaction(
        self,
        kind: LoanKindInput,
        loan_id: str,
        transaction_id: str,
    ) -> None:
        with self._mutation("reverse_loan_transaction") as cid:
            self._transactions.reverse_loan_transaction(kind, loan_id, transaction_id)
            self._log(AuditEventBuilder.transaction_reversed(
                "loan", loan_id, LoanTransactionKind(kind).value, transaction_id,
            ), cid)

    def edit_loan_transaction(
        self,
        kind: LoanKindInput,
        loan_id: str,
        transaction_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
    ) -> str:
        with self._mutation("edit_loan_transaction") as cid:
            new_id = self._transactions.edit_loan_transaction(
                kind, loan_id, transaction_id, amount, date, notes,
            )
            self._log(AuditEventBuilder.transaction_edited(
                "loan", loan_id, LoanTransactionKind(kind).value, new_id,
                self._amount_of(amount),
            ), cid)
        return new_id

    # -------------------------------------------------------------------------
    # Investments
    # -------------------------------------------------------------------------

    def create_investment(
        self,
        name: str,
        total_amount: MoneyInput,
        contributors: Iterable[ShareInput],
        date: Optional[dt.date] = None,
        notes: str = "",
    ) -> Investment:
        with self._mutation("create_investment") as cid:
            investment = self._investments.create_investment(
                name, total_amount, contributors, date, notes,
            )
            self._log(AuditEventBuilder.investment_created(
                investment.id,
                investment.name,
                self.store.investment_total(investment.id),
                len(self.store.contributors(investment.id)),
            ), cid)
        return investment

    def add_funds(
        self,
        investment_id: str,
        person_id: str,
        amount: MoneyInput,
        date: Optional[dt.date] = None,
        notes: Optional[str] = None,
    ) -> Allocation:
        with self._mutation("add_funds") as cid:
            row = self._investments.add_funds(investment_id, person_id, amount, date, notes)
            self._log(AuditEventBuilder.investment_funded(investment_id, person_id, row.amount), cid)
        return row

    def rename_investment(
        self,
        investment_id: str,
        name: str,
        date: Optional[dt.date] = None,
    ) -> Investment:
        with self._mutation("rename_investment") as cid:
            old_name = self.store.get_investment(investment_id).name
            investment = self._investments.rename_investment(investment_id, name, date)
            self._log(AuditEventBuilder.investment_renamed(investment.id, old_name, investment.name), cid)
        return investment

    def proportional_split(self, investment_id: str, total: MoneyInput) -> list[ContributorShare]:
        return self._investments.proportional_split(investment_id, total)

    def withdraw(
        self,
        investment_id: str,
        total: MoneyInput,
        deallocations: Iterable[ShareInput],
        date: Optional[dt.date] = None,
    ) -> AccountTransaction:
        with self._mutation("withdraw") as cid:
            entry = self._investments.withdraw(investment_id, total, deallocations, date)
            self._log(AuditEventBuilder.investment_withdrawn(investment_id, entry.amount, entry.id), cid)
        return entry

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def simulate_withdrawal(self, person_id: str, requested: MoneyInput) -> WithdrawalSimulation:
        return simulate_withdrawal(self.store, person_id, requested)

    def dashboard(self) -> DashboardSummary:
        return self._reports.dashboard()

    def person_statement(self, person_id: str) -> PersonStatement:
        return self._reports.person_statement(person_id)

    def loan_statement(self, loan_id: str) -> LoanStatement:
        return self._reports.loan_statement(loan_id)

    def account_log(self) -> list[AccountTransaction]:
        return self._reports.account_log()

    def investment_detail(self, investment_id: str) -> InvestmentDetail:
        return self._reports.investment_detail(investment_id)

    def recent_audit_events(self, limit: int = 100) -> list[AuditEvent]:
        return self._audit.recent(limit)

    # -------------------------------------------------------------------------
    # Data management
    # -------------------------------------------------------------------------

    def export_snapshot(self, on: Optional[dt.date] = None) -> tuple[str, str]:
        """Returns (filename, text) for the UI to offer as a download."""
        filename, text = export_snapshot(self.store, self._settings.export_filename_prefix, on)
        self._log(AuditEventBuilder.snapshot_exported(filename))
        return filename, text

    def preview_import(self, text: str) -> ValidationResult:
        """Validate a snapshot without touching the ledger (for the confirm dialog)."""
        return self._validator.validate(text)

    def import_snapshot(self, text: str, confirmed: bool = False) -> ValidationResult:
        """
        Replace the whole ledger with an imported snapshot.

        Raises:
            ImportNotConfirmedError: `confirmed` was not set
            StructuralValidationError: the snapshot failed validation
        """
        with self._mutation("import_snapshot", track_closures=False) as cid:
            if not confirmed:
                raise ImportNotConfirmedError(
                    "Importing replaces all current data and must be confirmed"
                )
            loaded, result = load_snapshot(text, self._settings.default_account_name, self._validator)
            self.store.replace_with(loaded)
            recalculate_all(self.store)
            self._log(AuditEventBuilder.snapshot_imported(
                people=len(self.store.people),
                investments=len(self.store.investments),
                loans=len(self.store.loans),
                warnings=result.warnings,
            ), cid)
        return result

    def clear_all(self, confirmation: str) -> None:
        """Reset to an empty ledger. `confirmation` must be the word DELETE."""
        with self._mutation("clear_all", track_closures=False) as cid:
            if confirmation != CLEAR_CONFIRMATION:
                raise InvalidInputError(f"Type {CLEAR_CONFIRMATION} to confirm clearing all data")
            self.store.replace_with(LedgerStore.empty(self._settings.default_account_name))
            self._log(AuditEventBuilder.ledger_cleared(), cid)

    @staticmethod
    def _amount_of(amount: MoneyInput) -> Decimal:
        return require_amount(amount)


def create_app_components(
    settings: Optional[Settings] = None,
    load_existing: bool = True,
) -> LedgerService:
    """
    Factory function to create the ledger service.

    Args:
        settings: Settings to use (defaults to get_settings()).
        load_existing: Whether to load the last saved snapshot.

    Returns:
        A ready LedgerService
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    snapshot_storage: SnapshotStorageInterface
    audit_storage: AuditStorageInterface
    if storage_settings.backend == "memory":
        snapshot_storage = InMemorySnapshotStorage()
        audit_storage = InMemoryAuditStorage()
    else:
        snapshot_storage = JsonFileSnapshotStorage(
            storage_settings.snapshot_path,
            retry_attempts=storage_settings.retry_attempts,
        )
        audit_storage = JsonLinesAuditStorage(
            storage_settings.audit_path,
            retry_attempts=storage_settings.retry_attempts,
        )

    service = LedgerService(
        snapshot_storage=snapshot_storage,
        audit_logger=AuditLogger(audit_storage),
        settings=settings.app,
    )
    if load_existing:
        service.load()
    return service
