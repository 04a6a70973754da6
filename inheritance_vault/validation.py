"""Validation logic for vault setup.

Every check is side-effect free and returns a `ValidationResult`. `ensure_valid` turns a
failed result into a `ValidationError` for callers that want to stop on the first error.
"""

from collections.abc import Iterable, Sequence

from eth_utils import is_address

from inheritance_vault.constants import (
    LONG_PERIOD_WARN_MINUTES,
    MAX_BENEFICIARIES,
    MAX_NAME_LENGTH,
    MAX_PERIOD_MINUTES,
    MIN_PERIOD_MINUTES,
    MIN_VAULT_BALANCE_WEI,
    SHORT_PERIOD_WARN_MINUTES,
)
from inheritance_vault.errors import ValidationError
from inheritance_vault.models import BeneficiaryInput, PeriodUnit, ValidationResult
from inheritance_vault.periods import parse_period_unit, period_seconds

OK = ValidationResult(is_valid=True)


def _fail(error: str, warnings: Iterable[str] = ()) -> ValidationResult:
    return ValidationResult(is_valid=False, error=error, warnings=tuple(warnings))


def _ok(warnings: Iterable[str] = ()) -> ValidationResult:
    return ValidationResult(is_valid=True, warnings=tuple(warnings))


def ensure_valid(result: ValidationResult) -> tuple[str, ...]:
    """Raise ValidationError for a failed result, otherwise return its warnings."""
    if not result.is_valid:
        raise ValidationError(result.error or "validation failed", result.warnings)
    return result.warnings


def validate_address(address: str) -> ValidationResult:
    """Check address format (mixed-case input must carry a valid checksum)."""
    if not isinstance(address, str) or not is_address(address):
        return _fail(f"Invalid Ethereum address: {address}")
    return OK


def validate_check_in_period(period: int, unit: PeriodUnit | str) -> ValidationResult:
    """Period must be between 5 minutes and 365 days."""
    try:
        unit = parse_period_unit(unit)
    except ValueError as ex:
        return _fail(str(ex))
    if isinstance(period, bool) or not isinstance(period, int):
        return _fail(f"Check-in period must be a whole number, got {period!r}")

    total_minutes = period_seconds(period, unit) // 60

    if total_minutes < MIN_PERIOD_MINUTES:
        return _fail(f"Check-in period must be at least {MIN_PERIOD_MINUTES} minutes")
    if total_minutes > MAX_PERIOD_MINUTES:
        return _fail("Check-in period cannot exceed 1 year")

    warnings: list[str] = []
    if total_minutes < SHORT_PERIOD_WARN_MINUTES:
        warnings.append("Very short check-in period - suitable for testing only")
    if total_minutes > LONG_PERIOD_WARN_MINUTES:
        warnings.append("Long check-in period - consider a shorter interval")
    return _ok(warnings)


def validate_vault_balance(balance: int) -> ValidationResult:
    """Vault must hold at least the minimum balance."""
    if balance < MIN_VAULT_BALANCE_WEI:
        return _fail(f"Vault balance too low. Minimum: {MIN_VAULT_BALANCE_WEI} wei (0.001 native)")
    return OK


def validate_beneficiary_name(name: str) -> ValidationResult:
    """Name must be non-empty and at most 50 characters."""
    if not name or not name.strip():
        return _fail("Beneficiary name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        return _fail(f"Beneficiary name too long (max {MAX_NAME_LENGTH} characters)")
    return OK


def validate_no_duplicates(addresses: Iterable[str]) -> ValidationResult:
    """Addresses must be unique, compared case-insensitively."""
    seen: set[str] = set()
    for address in addresses:
        normalized = address.lower()
        if normalized in seen:
            return _fail(f"Duplicate beneficiary address: {address}")
        seen.add(normalized)
    return OK


def validate_beneficiary_allocations(beneficiaries: Sequence[BeneficiaryInput], vault_balance: int) -> ValidationResult:
    """1 to 10 beneficiaries, each allocation positive, total not above the vault balance."""
    if not beneficiaries:
        return _fail("At least one beneficiary is required")
    if len(beneficiaries) > MAX_BENEFICIARIES:
        return _fail(
            f"Maximum {MAX_BENEFICIARIES} beneficiaries allowed",
            ["Large number of beneficiaries will increase gas costs significantly"],
        )

    for b in beneficiaries:
        if b.allocation <= 0:
            return _fail(f"Beneficiary {b.name} has zero or negative allocation")

    total_allocation = sum(b.allocation for b in beneficiaries)
    if total_allocation > vault_balance:
        return _fail(f"Total allocation ({total_allocation}) exceeds vault balance ({vault_balance})")

    warnings: list[str] = []
    if total_allocation < vault_balance:
        unallocated = vault_balance - total_allocation
        warnings.append(f"{unallocated} wei unallocated. Remaining funds will stay in vault.")
    return _ok(warnings)


def validate_beneficiaries(beneficiaries: Sequence[BeneficiaryInput], vault_balance: int) -> ValidationResult:
    """Per-entry checks, then duplicates, then allocations against the balance."""
    for b in beneficiaries:
        for result in (validate_address(b.address), validate_beneficiary_name(b.name)):
            if not result.is_valid:
                return result
        if not b.asset.is_native:
            token_result = validate_address(b.asset.address)
            if not token_result.is_valid:
                return _fail(f"Invalid token address for {b.name}: {b.asset.address}")

    duplicates = validate_no_duplicates(b.address for b in beneficiaries)
    if not duplicates.is_valid:
        return duplicates

    return validate_beneficiary_allocations(beneficiaries, vault_balance)


def validate_vault_setup(
    owner_address: str,
    beneficiaries: Sequence[BeneficiaryInput],
    vault_balance: int,
    period: int,
    unit: PeriodUnit | str,
) -> ValidationResult:
    """Run all checks in a fixed order, stopping on the first error and collecting warnings."""
    warnings: list[str] = []
    checks = (
        lambda: validate_address(owner_address),
        lambda: validate_check_in_period(period, unit),
        lambda: validate_vault_balance(vault_balance),
        lambda: validate_beneficiaries(beneficiaries, vault_balance),
    )
    for check in checks:
        result = check()
        if not result.is_valid:
            return _fail(result.error or "validation failed", [*warnings, *result.warnings])
        warnings.extend(result.warnings)
    return _ok(warnings)
