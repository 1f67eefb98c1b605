"""
btcbridge: Bridge Component Tests

Coverage:
  - Validity predicates (accounts, tx ids, amounts)
  - Fee calculator
  - AccessGuard, OracleRegistry, Whitelist, ReplayGuard
  - BridgeState setters and locked counter
  - Ledger mint / burn / snapshot
  - Exception taxonomy and error codes
  - Mock attestation service
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from btcbridge.bridge.access import AccessGuard
from btcbridge.bridge.fees import compute_fee, is_valid_fee_rate
from btcbridge.bridge.oracle import AttestationService, MockAttestationService
from btcbridge.bridge.registry import OracleRegistry, Whitelist
from btcbridge.bridge.replay import ReplayGuard
from btcbridge.bridge.state import BridgeState, is_valid_max_deposit
from btcbridge.bridge.types import (
    FeeQuote,
    is_null_account,
    is_valid_account,
    is_valid_amount,
    is_valid_tx_id,
    is_valid_withdraw_amount,
)
from btcbridge.constants import BRIDGE_OPERATOR, ZERO_ADDRESS
from btcbridge.exceptions import (
    BridgeError,
    BridgeException,
    ErrorCode,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidRecipientError,
    InvalidTxHashError,
    NotAuthorizedError,
    OracleValidationFailedError,
    StateStoreError,
    error_for_code,
)
from btcbridge.tokens.ledger import Ledger


OWNER = "owner-account"
ORACLE = "oracle-account"
ALICE = "alice-account"


@pytest.fixture
def state():
    return BridgeState(owner=OWNER)


# ══════════════════════════════════════════════════════════════════════
#  VALIDITY PREDICATES
# ══════════════════════════════════════════════════════════════════════

class TestPredicates:
    def test_null_accounts(self):
        assert is_null_account(None)
        assert is_null_account("")
        assert is_null_account(ZERO_ADDRESS)
        assert not is_null_account(ALICE)

    def test_valid_account_compares_with_caller(self):
        assert is_valid_account(ALICE, OWNER)
        assert not is_valid_account(OWNER, OWNER)
        assert not is_valid_account(ZERO_ADDRESS, OWNER)

    def test_tx_id_bounds(self):
        assert not is_valid_tx_id("x" * 10)
        assert is_valid_tx_id("x" * 11)
        assert is_valid_tx_id("x" * 64)
        assert not is_valid_tx_id("x" * 65)
        assert not is_valid_tx_id("")
        assert not is_valid_tx_id(12345678901)

    def test_amounts(self):
        assert is_valid_amount(1)
        assert not is_valid_amount(0)
        assert not is_valid_amount(-1)
        assert not is_valid_amount(1.0)
        assert not is_valid_amount(True)
        assert not is_valid_amount("100")

    def test_withdraw_amounts(self):
        assert is_valid_withdraw_amount(0)
        assert is_valid_withdraw_amount(1)
        assert not is_valid_withdraw_amount(-1)
        assert not is_valid_withdraw_amount(0.0)
        assert not is_valid_withdraw_amount(False)


# ══════════════════════════════════════════════════════════════════════
#  FEES
# ══════════════════════════════════════════════════════════════════════

class TestFees:
    def test_reference_quote(self):
        assert compute_fee(1000, 10) == FeeQuote(fee=10, net=990)

    def test_truncation(self):
        assert compute_fee(99, 10) == FeeQuote(fee=0, net=99)
        assert compute_fee(1999, 1) == FeeQuote(fee=1, net=1998)

    def test_zero_rate_and_zero_amount(self):
        assert compute_fee(12345, 0) == FeeQuote(fee=0, net=12345)
        assert compute_fee(0, 50) == FeeQuote(fee=0, net=0)

    def test_fee_never_exceeds_amount(self):
        for amount in (1, 7, 1000, 99_999_999):
            for rate in (0, 1, 10, 99):
                quote = compute_fee(amount, rate)
                assert 0 <= quote.fee <= amount
                assert quote.net == amount - quote.fee

    def test_rate_validation(self):
        assert is_valid_fee_rate(0)
        assert is_valid_fee_rate(99)
        assert not is_valid_fee_rate(100)
        assert not is_valid_fee_rate(-1)
        with pytest.raises(InvalidAmountError):
            compute_fee(1000, 100)

    def test_negative_amount(self):
        with pytest.raises(InvalidAmountError):
            compute_fee(-1, 10)


# ══════════════════════════════════════════════════════════════════════
#  ACCESS / REGISTRIES / REPLAY
# ══════════════════════════════════════════════════════════════════════

class TestAccessGuard:
    def test_owner_checks(self, state):
        guard = AccessGuard(state)
        assert guard.owner == OWNER
        assert guard.is_owner(OWNER)
        assert not guard.is_owner(ALICE)
        assert not guard.is_owner(None)
        guard.require_owner(OWNER)
        with pytest.raises(NotAuthorizedError):
            guard.require_owner(ALICE)

    def test_reads_owner_from_state(self, state):
        guard = AccessGuard(state)
        state.owner = ALICE
        assert guard.is_owner(ALICE)
        assert not guard.is_owner(OWNER)


class TestOracleRegistry:
    def test_toggle(self, state):
        registry = OracleRegistry(state.guard)
        assert registry.is_authorized(ORACLE) is False
        registry.set_oracle(OWNER, ORACLE, True)
        assert registry.is_authorized(ORACLE) is True
        registry.set_oracle(OWNER, ORACLE, False)
        assert registry.is_authorized(ORACLE) is False
        assert registry.to_dict() == {ORACLE: False}
        assert len(registry) == 1

    def test_non_owner(self, state):
        registry = OracleRegistry(state.guard)
        with pytest.raises(NotAuthorizedError):
            registry.set_oracle(ALICE, ORACLE, True)

    def test_invalid_account(self, state):
        registry = OracleRegistry(state.guard)
        with pytest.raises(InvalidRecipientError):
            registry.set_oracle(OWNER, ZERO_ADDRESS, True)
        with pytest.raises(InvalidRecipientError):
            registry.set_oracle(OWNER, OWNER, True)

    def test_owner_checked_before_account(self, state):
        registry = OracleRegistry(state.guard)
        with pytest.raises(NotAuthorizedError):
            registry.set_oracle(ALICE, ZERO_ADDRESS, True)

    def test_enabled_accounts_and_load(self, state):
        registry = OracleRegistry(state.guard)
        registry.load({ORACLE: True, ALICE: False})
        assert registry.enabled_accounts() == [ORACLE]


class TestWhitelist:
    def test_toggle(self, state):
        whitelist = Whitelist(state.guard)
        whitelist.set_whitelisted(OWNER, ALICE, True)
        assert whitelist.is_whitelisted(ALICE)
        whitelist.set_whitelisted(OWNER, ALICE, False)
        assert not whitelist.is_whitelisted(ALICE)

    def test_owner_cannot_whitelist_itself(self, state):
        whitelist = Whitelist(state.guard)
        with pytest.raises(InvalidRecipientError):
            whitelist.set_whitelisted(OWNER, OWNER, True)


class TestReplayGuard:
    def test_mark_and_query(self):
        guard = ReplayGuard()
        assert not guard.is_processed("tx-00000001")
        guard.mark_processed("tx-00000001")
        assert guard.is_processed("tx-00000001")
        assert guard.count == 1

    def test_snapshot_is_independent(self):
        guard = ReplayGuard()
        guard.mark_processed("tx-a")
        snap = guard.snapshot()
        guard.mark_processed("tx-b")
        guard.load(snap)
        assert guard.to_list() == ["tx-a"]


# ══════════════════════════════════════════════════════════════════════
#  BRIDGE STATE
# ══════════════════════════════════════════════════════════════════════

class TestBridgeState:
    def test_defaults(self, state):
        assert state.paused is False
        assert state.fee_rate == 10
        assert state.max_deposit == 10_000_000
        assert state.total_locked == 0

    def test_pause_unpause(self, state):
        state.pause(OWNER)
        assert state.paused
        state.unpause(OWNER)
        assert not state.paused
        with pytest.raises(NotAuthorizedError):
            state.pause(ALICE)

    def test_set_fee_rate(self, state):
        state.set_fee_rate(OWNER, 0)
        assert state.fee_rate == 0
        with pytest.raises(InvalidAmountError):
            state.set_fee_rate(OWNER, 100)
        assert state.fee_rate == 0

    def test_set_max_deposit(self, state):
        state.set_max_deposit(OWNER, 1)
        assert state.max_deposit == 1
        with pytest.raises(InvalidAmountError):
            state.set_max_deposit(OWNER, 0)

    def test_max_deposit_predicate(self):
        assert is_valid_max_deposit(1)
        assert is_valid_max_deposit(99_999_999)
        assert not is_valid_max_deposit(100_000_000)
        assert not is_valid_max_deposit(0)

    def test_lock_release(self, state):
        state.lock(500)
        state.release(200)
        assert state.total_locked == 300
        with pytest.raises(InsufficientBalanceError):
            state.release(301)

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            BridgeState(owner=ZERO_ADDRESS)
        with pytest.raises(ValueError):
            BridgeState(owner=OWNER, max_deposit=0)

    def test_dict_round_trip(self, state):
        state.lock(42)
        state.pause(OWNER)
        restored = BridgeState.from_dict(state.to_dict())
        assert restored.to_dict() == state.to_dict()
        assert restored.guard.is_owner(OWNER)


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class TestLedger:
    @pytest.fixture
    def ledger(self):
        ledger = Ledger()
        ledger.add_operator(BRIDGE_OPERATOR)
        return ledger

    def test_metadata(self, ledger):
        assert ledger.name == "Bridged Bitcoin"
        assert ledger.symbol == "bBTC"
        assert ledger.decimals == 8

    def test_mint_and_burn(self, ledger):
        ledger.mint(BRIDGE_OPERATOR, ALICE, 990, "a" * 11)
        assert ledger.balance_of(ALICE) == 990
        assert ledger.total_supply == 990
        ledger.burn(BRIDGE_OPERATOR, ALICE, 990)
        assert ledger.balance_of(ALICE) == 0
        assert ledger.total_supply == 0
        assert ledger.holders == 0

    def test_operator_required(self, ledger):
        with pytest.raises(NotAuthorizedError):
            ledger.mint(ALICE, ALICE, 1, "a" * 11)
        ledger.remove_operator(BRIDGE_OPERATOR)
        with pytest.raises(NotAuthorizedError):
            ledger.mint(BRIDGE_OPERATOR, ALICE, 1, "a" * 11)

    def test_burn_more_than_balance(self, ledger):
        ledger.mint(BRIDGE_OPERATOR, ALICE, 10, "a" * 11)
        with pytest.raises(InsufficientBalanceError):
            ledger.burn(BRIDGE_OPERATOR, ALICE, 11)
        assert ledger.balance_of(ALICE) == 10

    def test_non_positive_amounts(self, ledger):
        with pytest.raises(InvalidAmountError):
            ledger.mint(BRIDGE_OPERATOR, ALICE, 0, "a" * 11)
        with pytest.raises(InvalidAmountError):
            ledger.burn(BRIDGE_OPERATOR, ALICE, 0)

    def test_snapshot_restore(self, ledger):
        ledger.mint(BRIDGE_OPERATOR, ALICE, 100, "a" * 11)
        snap = ledger.take_snapshot()
        ledger.mint(BRIDGE_OPERATOR, ORACLE, 50, "b" * 11)
        ledger.restore_snapshot(snap)
        assert ledger.balance_of(ORACLE) == 0
        assert ledger.total_supply == 100
        assert len(ledger.events) == 1

    def test_load_rejects_negative_balances(self, ledger):
        with pytest.raises(ValueError):
            ledger.load({"balances": {ALICE: -1}})

    def test_invalid_metadata(self):
        with pytest.raises(ValueError):
            Ledger(symbol="")
        with pytest.raises(ValueError):
            Ledger(decimals=19)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TestExceptions:
    def test_codes_are_stable(self):
        assert [int(c) for c in ErrorCode] == list(range(1, 10))
        assert ErrorCode.NOT_AUTHORIZED == 1
        assert ErrorCode.ORACLE_VALIDATION_FAILED == 6
        assert ErrorCode.INVALID_TX_HASH == 9

    def test_error_for_code(self):
        for code in ErrorCode:
            cls = error_for_code(int(code))
            assert issubclass(cls, BridgeError)
            assert cls.code == code
        assert error_for_code(7) is InvalidRecipientError

    def test_default_message_and_dict(self):
        err = InvalidTxHashError()
        assert err.message == "invalid tx hash"
        assert err.to_dict() == {"code": 9, "name": "INVALID_TX_HASH", "message": "invalid tx hash"}

    def test_hierarchy(self):
        assert issubclass(BridgeError, BridgeException)
        assert issubclass(StateStoreError, BridgeException)
        assert not issubclass(StateStoreError, BridgeError)
        assert isinstance(OracleValidationFailedError("x"), BridgeError)


# ══════════════════════════════════════════════════════════════════════
#  ATTESTATION
# ══════════════════════════════════════════════════════════════════════

class TestMockAttestation:
    def test_accepts_by_default(self):
        service = MockAttestationService()
        assert isinstance(service, AttestationService)
        assert service.attest(ORACLE, "a" * 11, 100) is True

    def test_refused_tx(self):
        service = MockAttestationService()
        service.refuse("a" * 11)
        assert service.attest(ORACLE, "a" * 11, 100) is False
        assert service.calls["a" * 11] == (ORACLE, 100)
