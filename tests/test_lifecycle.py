import pytest
from conftest import ALICE, BOB, CAROL, ONE, OWNER, START, TOKEN

from inheritance_vault.errors import (
    AlreadyClaimedError,
    DelegationDisabledError,
    DeploymentError,
    FundingError,
    NoActiveDelegationsError,
    NotFoundError,
    SigningError,
    TooEarlyError,
    TransactionError,
    ValidationError,
)
from inheritance_vault.models import BeneficiaryInput, PeriodUnit, TokenAsset, VaultStatus
from inheritance_vault.store import active_delegations, beneficiary_delegation

DAY = 24 * 60 * 60
KEY = "0x" + "11" * 32


def test_create_vault_persists_record(engine, framework, store, clock):
    record = engine.create_vault(OWNER, 7, PeriodUnit.DAYS)
    vault = record.config.vault_address

    assert framework.is_deployed(vault)
    stored = store.load(vault)
    assert stored.config.owner_address == OWNER
    assert stored.config.last_check_in == START
    assert stored.config.next_deadline == START + 7 * DAY
    assert stored.beneficiaries == []
    assert stored.version == 1


def test_create_vault_rejects_bad_period_before_deploying(engine, framework):
    with pytest.raises(ValidationError, match="at least 5 minutes"):
        engine.create_vault(OWNER, 1, "minutes")
    assert framework.deployed == set()


def test_create_vault_deploy_failure(engine, framework, store):
    framework.fail_deploy = True
    with pytest.raises(DeploymentError):
        engine.create_vault(OWNER)
    assert store.list() == []


def test_create_vault_funding_failure_keeps_vault(engine, framework, store):
    framework.fail_fund = True
    with pytest.raises(FundingError) as exc_info:
        engine.create_vault(OWNER, initial_funding=ONE)
    vault = exc_info.value.vault_address
    assert store.load(vault) is not None

    framework.fail_fund = False
    assert engine.fund_vault(vault, ONE) == ONE


def test_load_vault_unknown(engine):
    with pytest.raises(NotFoundError):
        engine.load_vault("0x" + "99" * 20)


def test_setup_beneficiaries_issues_one_delegation_each(engine, store, active_vault):
    record = store.load(active_vault)
    assert [b.name for b in record.beneficiaries] == ["Alice", "Bob"]
    assert [b.percentage for b in record.beneficiaries] == [60.0, 40.0]
    assert len(record.delegations) == 2
    assert {d.epoch for d in record.delegations} == {0}
    for b in record.beneficiaries:
        stored = beneficiary_delegation(record, b.address)
        assert b.delegation_hash == stored.hash
        assert stored.deadline == record.config.next_deadline
        assert [c.enforcer for c in stored.delegation.delegation.caveats][0].lower() == "0x" + "00" * 19 + "e1"


def test_setup_rejects_over_allocation(engine, store, funded_vault):
    with pytest.raises(ValidationError, match="exceeds vault balance"):
        engine.setup_beneficiaries(
            funded_vault,
            [
                BeneficiaryInput(address=ALICE, name="Alice", allocation=ONE),
                BeneficiaryInput(address=BOB, name="Bob", allocation=1),
            ],
        )
    assert store.load(funded_vault).beneficiaries == []


def test_setup_signing_failure_persists_nothing(engine, framework, store, funded_vault):
    framework.fail_sign_at = 1
    with pytest.raises(SigningError):
        engine.setup_beneficiaries(
            funded_vault,
            [
                BeneficiaryInput(address=ALICE, name="Alice", allocation=ONE // 2),
                BeneficiaryInput(address=BOB, name="Bob", allocation=ONE // 2),
            ],
        )
    record = store.load(funded_vault)
    assert record.beneficiaries == []
    assert record.delegations == []


def test_setup_replaces_previous_list(engine, store, active_vault):
    engine.replace_all(active_vault, [BeneficiaryInput(address=CAROL, name="Carol", allocation=ONE)])
    record = store.load(active_vault)
    assert [b.name for b in record.beneficiaries] == ["Carol"]
    assert record.current_epoch == 1
    assert len(active_delegations(record)) == 1


def test_token_beneficiary_uses_erc20_cap(engine, store, funded_vault):
    engine.setup_beneficiaries(
        funded_vault, [BeneficiaryInput(address=ALICE, name="Alice", allocation=500, asset=TokenAsset(TOKEN))]
    )
    record = store.load(funded_vault)
    caveats = record.beneficiaries[0].delegation.delegation.caveats
    assert caveats[2].enforcer.lower() == "0x" + "00" * 19 + "e4"
    assert isinstance(record.beneficiaries[0].asset, TokenAsset)


def test_scenario_owner_disappears_and_beneficiaries_claim(engine, framework, store, clock, active_vault):
    with pytest.raises(TooEarlyError) as exc_info:
        engine.claim(active_vault, ALICE, KEY)
    assert exc_info.value.seconds_remaining == 30 * DAY

    clock.advance(30 * DAY)
    assert engine.status(active_vault).status == VaultStatus.CLAIMABLE
    assert engine.can_claim(active_vault, ALICE) == (True, None)

    result = engine.claim(active_vault, ALICE, KEY)
    assert result.amount == 6 * ONE // 10
    assert framework.get_balance(active_vault) == 4 * ONE // 10

    status = engine.claim_status(active_vault, ALICE)
    assert status.has_claimed
    assert status.claim_tx_hash == result.tx_hash
    assert status.claim_timestamp == clock.now

    with pytest.raises(AlreadyClaimedError):
        engine.claim(active_vault, ALICE, KEY)

    engine.claim(active_vault, BOB, KEY)
    assert framework.get_balance(active_vault) == 0
    assert engine.status(active_vault).status == VaultStatus.EMPTY


def test_claim_unknown_beneficiary(engine, active_vault):
    with pytest.raises(NotFoundError):
        engine.claim(active_vault, CAROL, KEY)
    assert engine.can_claim(active_vault, CAROL) == (False, "Not a beneficiary")
    assert engine.claim_status(active_vault, CAROL) is None


def test_claim_redemption_failure_is_not_recorded(engine, framework, store, clock, active_vault):
    clock.advance(31 * DAY)
    framework.fail_redeem = True
    with pytest.raises(TransactionError):
        engine.claim(active_vault, ALICE, KEY)
    assert not store.load(active_vault).beneficiaries[0].has_claimed


def test_check_in_rotates_delegations(engine, framework, store, clock, active_vault):
    before = store.load(active_vault)
    old_hashes = {d.hash for d in before.delegations}

    clock.advance(10 * DAY)
    entry = engine.check_in(active_vault)

    assert entry.disabled_delegation_count == 2
    assert entry.created_delegation_count == 2
    assert entry.new_deadline == clock.now + 30 * DAY
    assert entry.failed_disables == ()
    assert entry.gas_used == 100_000
    assert old_hashes <= framework.disabled

    after = store.load(active_vault)
    assert after.config.last_check_in == clock.now
    assert after.config.next_deadline == entry.new_deadline
    assert after.current_epoch == 1
    new_hashes = {d.hash for d in active_delegations(after)}
    assert len(new_hashes) == 2
    assert not new_hashes & old_hashes
    assert all(d.is_disabled for d in after.delegations if d.hash in old_hashes)
    assert len(after.check_ins) == 1


def test_check_in_twice_moves_deadline_forward(engine, store, clock, active_vault):
    clock.advance(DAY)
    first = engine.check_in(active_vault)
    clock.advance(DAY)
    second = engine.check_in(active_vault)
    assert second.new_deadline > first.new_deadline
    assert len(store.load(active_vault).check_ins) == 2


def test_check_in_with_new_period(engine, store, clock, active_vault):
    entry = engine.check_in(active_vault, 2, "weeks")
    record = store.load(active_vault)
    assert entry.new_deadline == clock.now + 14 * DAY
    assert record.config.check_in_period == 2
    assert record.config.check_in_period_unit == PeriodUnit.WEEKS


def test_check_in_without_delegations(engine, funded_vault):
    with pytest.raises(NoActiveDelegationsError):
        engine.check_in(funded_vault)
    assert engine.can_check_in(funded_vault) is False


def test_check_in_invalid_period_changes_nothing(engine, framework, active_vault):
    with pytest.raises(ValidationError):
        engine.check_in(active_vault, 2, "years")
    assert framework.disable_calls == 0


def test_check_in_partial_disable_failure(engine, framework, store, active_vault):
    record = store.load(active_vault)
    stuck = beneficiary_delegation(record, BOB).hash
    framework.fail_disable.add(stuck)

    entry = engine.check_in(active_vault)

    assert entry.disabled_delegation_count == 1
    assert entry.created_delegation_count == 2
    assert entry.failed_disables == (stuck,)
    after = store.load(active_vault)
    assert not next(d for d in after.delegations if d.hash == stuck).is_disabled


def test_check_in_skips_already_disabled_on_chain(engine, framework, store, active_vault):
    record = store.load(active_vault)
    framework.disabled.add(beneficiary_delegation(record, ALICE).hash)

    entry = engine.check_in(active_vault)

    assert framework.disable_calls == 1
    assert entry.disabled_delegation_count == 2


def test_check_in_signing_failure_leaves_delegations_disabled(engine, framework, store, clock, active_vault):
    framework.fail_sign_at = framework.sign_count
    with pytest.raises(SigningError):
        engine.check_in(active_vault)

    record = store.load(active_vault)
    assert record.current_epoch == 0
    assert active_delegations(record) == []
    assert record.check_ins == []

    clock.advance(31 * DAY)
    with pytest.raises(DelegationDisabledError):
        engine.claim(active_vault, ALICE, KEY)
    assert engine.can_claim(active_vault, ALICE) == (False, "Delegation disabled")
    assert engine.status(active_vault).status == VaultStatus.CLAIMABLE


def test_claimed_beneficiary_is_not_reissued(engine, store, clock, active_vault):
    clock.advance(30 * DAY)
    engine.claim(active_vault, ALICE, KEY)

    entry = engine.check_in(active_vault)

    assert entry.created_delegation_count == 1
    record = store.load(active_vault)
    assert [b.name for b in record.beneficiaries] == ["Alice", "Bob"]
    assert record.beneficiaries[0].has_claimed
    assert [d.beneficiary_address for d in active_delegations(record)] == [BOB]


def test_add_beneficiary_keeps_existing_delegations(engine, framework, store, funded_vault):
    engine.setup_beneficiaries(funded_vault, [BeneficiaryInput(address=ALICE, name="Alice", allocation=ONE // 2)])
    added = engine.add_beneficiary(funded_vault, BeneficiaryInput(address=BOB, name="Bob", allocation=ONE // 4))

    record = store.load(funded_vault)
    assert added.name == "Bob"
    assert [b.name for b in record.beneficiaries] == ["Alice", "Bob"]
    assert record.current_epoch == 0
    assert len(active_delegations(record)) == 2
    assert framework.disable_calls == 0


def test_add_beneficiary_rejects_duplicate_and_over_allocation(engine, active_vault):
    with pytest.raises(ValidationError, match="already exists"):
        engine.add_beneficiary(active_vault, BeneficiaryInput(address="0x" + ALICE[2:].upper(), name="A", allocation=1))
    with pytest.raises(ValidationError, match="exceeds vault balance"):
        engine.add_beneficiary(active_vault, BeneficiaryInput(address=CAROL, name="Carol", allocation=1))


def test_remove_beneficiary_disables_delegation(engine, framework, store, active_vault):
    digest = beneficiary_delegation(store.load(active_vault), BOB).hash

    remaining = engine.remove_beneficiary(active_vault, BOB)

    assert [b.name for b in remaining] == ["Alice"]
    assert digest in framework.disabled
    record = store.load(active_vault)
    assert len(active_delegations(record)) == 1
    with pytest.raises(NotFoundError):
        engine.remove_beneficiary(active_vault, BOB)


def test_time_until_check_in(engine, clock, active_vault):
    clock.advance(29 * DAY)
    calc = engine.time_until_check_in(active_vault)
    assert calc.seconds_remaining == DAY
    assert not calc.is_past
    assert calc.human_readable == "1d"


def test_create_vault_defaults_owner_to_signing_key(engine, framework):
    record = engine.create_vault()
    assert record.config.owner_address == framework.owner_address


def test_create_vault_rejects_owner_that_cannot_sign(engine, framework, store):
    with pytest.raises(ValidationError, match="does not match the signing key"):
        engine.create_vault(ALICE)
    assert framework.deployed == set()
    assert store.list() == []


def test_claim_right_after_check_in_is_too_early(engine, clock, active_vault):
    clock.advance(20 * DAY)
    entry = engine.check_in(active_vault)
    with pytest.raises(TooEarlyError) as exc_info:
        engine.claim(active_vault, BOB, KEY)
    assert exc_info.value.seconds_remaining == entry.new_deadline - clock.now == 30 * DAY


def test_failed_disable_is_retried_by_next_check_in(engine, framework, store, clock, active_vault):
    stuck = beneficiary_delegation(store.load(active_vault), BOB).hash
    framework.fail_disable.add(stuck)
    first = engine.check_in(active_vault)
    assert first.failed_disables == (stuck,)
    assert stuck not in framework.disabled
    assert engine.can_check_in(active_vault)

    framework.fail_disable.clear()
    clock.advance(DAY)
    second = engine.check_in(active_vault)

    assert stuck in framework.disabled
    assert second.failed_disables == ()
    assert second.disabled_delegation_count == 3
    record = store.load(active_vault)
    assert all(d.is_disabled for d in record.delegations if d.epoch < record.current_epoch)


def test_redeemed_delegation_is_not_disabled_again(engine, framework, store, clock, active_vault):
    clock.advance(30 * DAY)
    engine.claim(active_vault, ALICE, KEY)
    redeemed = store.load(active_vault).beneficiaries[0].delegation_hash

    entry = engine.check_in(active_vault)

    assert entry.disabled_delegation_count == 1
    assert redeemed not in framework.disabled


def test_removed_then_readded_beneficiary_can_claim(engine, framework, store, clock, active_vault):
    engine.remove_beneficiary(active_vault, BOB)
    engine.add_beneficiary(active_vault, BeneficiaryInput(address=BOB, name="Bob", allocation=4 * ONE // 10))

    record = store.load(active_vault)
    bob = [d for d in record.delegations if d.beneficiary_address == BOB]
    assert [d.is_disabled for d in bob] == [True, False]
    assert bob[0].hash != bob[1].hash
    assert bob[1].hash not in framework.disabled
    assert beneficiary_delegation(record, BOB) is bob[1]

    clock.advance(31 * DAY)
    assert engine.claim(active_vault, BOB, KEY).amount == 4 * ONE // 10


def test_every_issued_delegation_has_a_distinct_salt(engine, store, active_vault):
    engine.remove_beneficiary(active_vault, BOB)
    engine.add_beneficiary(active_vault, BeneficiaryInput(address=BOB, name="Bob", allocation=4 * ONE // 10))
    engine.check_in(active_vault)

    record = store.load(active_vault)
    hashes = [d.hash for d in record.delegations]
    assert [d.delegation.delegation.salt for d in record.delegations] == [0, 1, 2, 3, 4]
    assert len(set(hashes)) == len(hashes)
