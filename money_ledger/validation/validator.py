"""
Two-Stage Snapshot Validation

DESIGN DECISION: An imported snapshot is validated in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- The text is JSON and the top level is an object
- `people`, `accounts` and `investments` are present and are lists
- Every entity validates against the snapshot models
- This catches hand-edited or truncated files

STAGE 2 - SEMANTIC VALIDATION:
- Duplicate ids
- Invested records pointing at investments that do not exist
- Declared totals / contributor lists that disagree with the invested records
- An account balance that disagrees with its own entry log
- This catches data that parses but cannot be loaded consistently

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Stage 2 needs a parsed snapshot, so it is skipped if stage 1 fails

Errors reject the import. Warnings describe what loading will normalize
(dropped zero-amount records, derived totals, an adjustment entry); they
are reported, never silent.
"""

import json
from collections import Counter
from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from money_ledger.errors import StructuralValidationError
from money_ledger.models.ledger import (
    ZERO,
    LedgerSnapshot,
    ValidationIssue,
    ValidationResult,
)


REQUIRED_COLLECTIONS = ("people", "accounts", "investments")
OPTIONAL_COLLECTIONS = ("loans",)


def _location(loc: tuple) -> str:
    parts = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        else:
            parts.append(f".{item}" if parts else str(item))
    return "".join(parts)


class SnapshotValidator:
    """
    Validates snapshot text through a two-stage pipeline.

    Stage 1: Schema validation (JSON shape, required collections, types)
    Stage 2: Semantic validation (references, derived values)
    """

    def _validate_schema(
        self,
        text: str,
    ) -> tuple[Optional[LedgerSnapshot], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (snapshot_or_None, list_of_issues)
        """
        issues = []

        try:
            data: Any = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            issues.append(ValidationIssue(
                field="snapshot",
                issue_type="invalid_json",
                message=f"File is not valid JSON: {e}",
                severity="error",
                suggested_fix="Export the ledger again and import the new file",
            ))
            return None, issues

        if not isinstance(data, dict):
            issues.append(ValidationIssue(
                field="snapshot",
                issue_type="invalid_structure",
                message="Top level of the file must be an object",
                severity="error",
            ))
            return None, issues

        for name in REQUIRED_COLLECTIONS:
            if name not in data:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="missing",
                    message=f"Required collection '{name}' is missing",
                    severity="error",
                    suggested_fix="Only files produced by the export can be imported",
                ))
            elif not isinstance(data[name], list):
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="invalid_type",
                    message=f"'{name}' must be a list",
                    severity="error",
                ))

        for name in OPTIONAL_COLLECTIONS:
            if name in data and not isinstance(data[name], list):
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="invalid_type",
                    message=f"'{name}' must be a list when present",
                    severity="error",
                ))

        if issues:
            return None, issues

        try:
            snapshot = LedgerSnapshot.model_validate(data)
        except ValidationError as e:
            for error in e.errors():
                issues.append(ValidationIssue(
                    field=_location(error["loc"]),
                    issue_type="invalid_value",
                    message=f"{_location(error['loc'])}: {error['msg']}",
                    severity="error",
                ))
            return None, issues

        return snapshot, issues

    def _validate_semantic(
        self,
        snapshot: LedgerSnapshot,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        issues.extend(self._check_duplicate_ids(snapshot))
        issues.extend(self._check_invested_records(snapshot))
        issues.extend(self._check_investment_totals(snapshot))
        issues.extend(self._check_accounts(snapshot))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _check_duplicate_ids(self, snapshot: LedgerSnapshot) -> list[ValidationIssue]:
        issues = []
        collections = {
            "people": [p.id for p in snapshot.people],
            "investments": [i.id for i in snapshot.investments],
            "loans": [l.id for l in snapshot.loans],
            "invested records": [r.id for p in snapshot.people for r in p.invested],
            "account entries": [t.id for t in snapshot.accounts[0].transactions] if snapshot.accounts else [],
        }
        for name, ids in collections.items():
            for duplicate, count in Counter(ids).items():
                if count > 1:
                    issues.append(ValidationIssue(
                        field=name,
                        issue_type="duplicate_id",
                        message=f"Id {duplicate} appears {count} times in {name}",
                        severity="error",
                    ))
        return issues

    def _check_invested_records(self, snapshot: LedgerSnapshot) -> list[ValidationIssue]:
        issues = []
        investment_ids = {i.id for i in snapshot.investments}
        for p_index, person in enumerate(snapshot.people):
            for r_index, record in enumerate(person.invested):
                field = f"people[{p_index}].invested[{r_index}]"
                if record.amount == 0:
                    issues.append(ValidationIssue(
                        field=field,
                        issue_type="zero_amount",
                        message=f"Empty invested record of {person.name} will be dropped",
                        severity="warning",
                    ))
                elif record.investment_id not in investment_ids:
                    issues.append(ValidationIssue(
                        field=field,
                        issue_type="orphan_record",
                        message=(
                            f"{person.name} has {record.amount} invested in "
                            f"unknown investment {record.investment_id}"
                        ),
                        severity="error",
                        suggested_fix="Restore the investment or remove the record",
                    ))
        return issues

    def _check_investment_totals(self, snapshot: LedgerSnapshot) -> list[ValidationIssue]:
        issues = []
        derived: dict[str, dict[str, Decimal]] = {i.id: {} for i in snapshot.investments}
        for person in snapshot.people:
            for record in person.invested:
                if record.amount > 0 and record.investment_id in derived:
                    shares = derived[record.investment_id]
                    shares[person.id] = shares.get(person.id, ZERO) + record.amount

        for index, investment in enumerate(snapshot.investments):
            shares = derived[investment.id]
            total = sum(shares.values(), ZERO)
            field = f"investments[{index}]"
            if total <= 0:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="empty_investment",
                    message=f"Investment {investment.name} holds nothing and will be closed",
                    severity="warning",
                ))
                continue
            if investment.total_amount != total:
                issues.append(ValidationIssue(
                    field=f"{field}.totalAmount",
                    issue_type="derived_mismatch",
                    message=(
                        f"Investment {investment.name} declares {investment.total_amount} "
                        f"but its invested records add up to {total}"
                    ),
                    severity="warning",
                    suggested_fix="The invested records are used",
                ))
            declared = {c.person_id: c.amount for c in investment.contributors if c.amount > 0}
            if declared != shares:
                issues.append(ValidationIssue(
                    field=f"{field}.contributors",
                    issue_type="derived_mismatch",
                    message=f"Contributors of {investment.name} do not match the invested records",
                    severity="warning",
                    suggested_fix="The invested records are used",
                ))
        return issues

    def _check_accounts(self, snapshot: LedgerSnapshot) -> list[ValidationIssue]:
        issues = []
        if not snapshot.accounts:
            issues.append(ValidationIssue(
                field="accounts",
                issue_type="missing",
                message="No settlement account; a default one will be created",
                severity="warning",
            ))
            return issues

        if len(snapshot.accounts) > 1:
            issues.append(ValidationIssue(
                field="accounts",
                issue_type="extra_accounts",
                message=f"{len(snapshot.accounts)} accounts found; only the first is used",
                severity="warning",
            ))

        account = snapshot.accounts[0]
        logged = sum((t.amount for t in account.transactions), ZERO)
        if logged != account.balance:
            issues.append(ValidationIssue(
                field="accounts[0].balance",
                issue_type="balance_mismatch",
                message=(
                    f"Account balance {account.balance} differs from its entries "
                    f"({logged}); an adjustment entry will be added"
                ),
                severity="warning",
            ))
        return issues

    def validate(self, text: str) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Returns:
            ValidationResult with all issues found
        """
        return self._run(text)[1]

    def parse(self, text: str) -> tuple[LedgerSnapshot, ValidationResult]:
        """
        Validate and return the parsed snapshot.

        Raises:
            StructuralValidationError: on any error-level issue
        """
        snapshot, result = self._run(text)
        if snapshot is None or not result.is_valid:
            errors = [issue for issue in result.issues if issue.severity == "error"]
            raise StructuralValidationError(errors)
        return snapshot, result

    def _run(self, text: str) -> tuple[Optional[LedgerSnapshot], ValidationResult]:
        all_issues = []

        # Stage 1: Schema validation
        snapshot, schema_issues = self._validate_schema(text)
        all_issues.extend(schema_issues)
        schema_valid = snapshot is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(snapshot)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return snapshot, ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the import dialog shows before asking for confirmation.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed. Importing will replace all current data."

        lines = []
        if result.has_errors:
            lines.append(f"The file cannot be imported ({result.error_count} problem(s)):")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"  - {issue.message}")
        if result.warnings:
            lines.append("Please note:")
            for warning in result.warnings:
                lines.append(f"  - {warning}")
        return "\n".join(lines)
