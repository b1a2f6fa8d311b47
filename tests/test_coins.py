import random
from types import SimpleNamespace

import pytest

from app.core.config import get_settings
from app.core.exceptions import InvalidArgumentError, InvalidStateError, NotFoundError
from app.models.transaction_log import TransactionLog
from app.models.user import User
from app.services import coins
from app.services.users import create_user

pytestmark = pytest.mark.asyncio


async def _balance(user_id: int) -> int:
    return (await User.get(user_id)).coins


async def test_adjust_balance_credit_and_debit(db):
    user = await create_user("Ada", "ada@example.com", coins=100)
    updated = await coins.adjust_balance(user.id, 50)
    assert updated.coins == 150
    updated = await coins.adjust_balance(user.id, -150)
    assert updated.coins == 0
    # no ledger writes from the raw mutator
    assert await TransactionLog.find_all().count() == 0


async def test_adjust_balance_rounds_to_whole_coins(db):
    user = await create_user("Ada", "ada@example.com", coins=10)
    assert (await coins.adjust_balance(user.id, 2.6)).coins == 13


async def test_half_coins_round_up(db):
    user = await create_user("Ada", "ada@example.com", coins=10)
    assert (await coins.adjust_balance(user.id, 2.5)).coins == 13
    assert (await coins.adjust_balance(user.id, -2.5)).coins == 11
    with pytest.raises(InvalidArgumentError):
        await coins.adjust_balance(user.id, -0.5)


async def test_transfer_of_half_coin_moves_one(db):
    sender = await create_user("Ada", "ada@example.com", coins=10)
    receiver = await create_user("Bob", "bob@example.com")
    result = await coins.transfer(sender.id, receiver.id, 0.5)
    assert result == {"fromBalance": 9, "toBalance": 1, "amount": 1}


@pytest.mark.parametrize("amount", [1e20, -1e20, 2**63, -(2**63)])
async def test_rejects_amounts_beyond_int64(db, amount):
    user = await create_user("Ada", "ada@example.com", coins=30)
    with pytest.raises(InvalidArgumentError, match="out of range"):
        await coins.adjust_balance(user.id, amount)
    assert await _balance(user.id) == 30


async def test_to_coins_bounds():
    assert coins.to_coins(2**63 - 1) == 2**63 - 1
    assert coins.to_coins(-(2**63 - 1)) == -(2**63 - 1)
    with pytest.raises(InvalidArgumentError):
        coins.to_coins(1e20)


async def test_adjust_balance_rejects_overdraft(db):
    user = await create_user("Ada", "ada@example.com", coins=30)
    with pytest.raises(InvalidStateError) as exc:
        await coins.adjust_balance(user.id, -31)
    assert exc.value.details == {"requiredCoins": 31, "currentCoins": 30}
    assert await _balance(user.id) == 30


@pytest.mark.parametrize("amount", ["10", None, float("nan"), float("inf"), True, 0])
async def test_adjust_balance_rejects_bad_amount(db, amount):
    user = await create_user("Ada", "ada@example.com", coins=30)
    with pytest.raises(InvalidArgumentError):
        await coins.adjust_balance(user.id, amount)
    assert await _balance(user.id) == 30


async def test_adjust_balance_unknown_user(db):
    with pytest.raises(NotFoundError):
        await coins.adjust_balance(4242, 10)


async def test_admin_adjust_records_ledger_entry(db):
    user = await create_user("Ada", "ada@example.com", coins=20)
    updated = await coins.admin_adjust(user.id, -5, admin_id=101, reason="Chargeback")
    assert updated.coins == 15
    entry = await TransactionLog.find_one(TransactionLog.user_id == user.id)
    assert entry.type == "debit"
    assert entry.amount == 5
    assert entry.reason == "Chargeback"
    assert entry.reference_type == "admin_adjustment"
    assert entry.metadata == {"adminId": 101}


async def test_transfer_moves_coins(db):
    sender = await create_user("Ada", "ada@example.com", coins=300)
    receiver = await create_user("Bob", "bob@example.com", coins=50)
    result = await coins.transfer(sender.id, receiver.id, 100)
    assert result["fromBalance"] == 200
    assert await _balance(sender.id) == 200
    assert await _balance(receiver.id) == 150

    entries = await TransactionLog.find(TransactionLog.reference_type == "transfer").to_list()
    assert sorted((e.user_id, e.type, e.amount) for e in entries) == [
        (sender.id, "debit", 100),
        (receiver.id, "credit", 100),
    ]


async def test_transfer_without_ledger_policy(db, monkeypatch):
    monkeypatch.setattr(get_settings(), "ledger_transfers", False)
    sender = await create_user("Ada", "ada@example.com", coins=10)
    receiver = await create_user("Bob", "bob@example.com")
    await coins.transfer(sender.id, receiver.id, 10)
    assert await _balance(receiver.id) == 10
    assert await TransactionLog.find_all().count() == 0


async def test_transfer_insufficient_leaves_balances(db):
    sender = await create_user("Ada", "ada@example.com", coins=40)
    receiver = await create_user("Bob", "bob@example.com", coins=5)
    with pytest.raises(InvalidStateError):
        await coins.transfer(sender.id, receiver.id, 41)
    assert await _balance(sender.id) == 40
    assert await _balance(receiver.id) == 5


@pytest.mark.parametrize("amount", [-5, 0, 0.2, "5", float("nan")])
async def test_transfer_rejects_bad_amount(db, amount):
    sender = await create_user("Ada", "ada@example.com", coins=300)
    receiver = await create_user("Bob", "bob@example.com", coins=50)
    with pytest.raises(InvalidArgumentError):
        await coins.transfer(sender.id, receiver.id, amount)
    assert await _balance(sender.id) == 300
    assert await _balance(receiver.id) == 50


async def test_transfer_to_missing_user(db):
    sender = await create_user("Ada", "ada@example.com", coins=300)
    with pytest.raises(NotFoundError):
        await coins.transfer(sender.id, 9999, 10)
    assert await _balance(sender.id) == 300


async def test_transfer_to_self_rejected(db):
    sender = await create_user("Ada", "ada@example.com", coins=300)
    with pytest.raises(InvalidArgumentError):
        await coins.transfer(sender.id, sender.id, 10)


async def test_random_operations_never_go_negative(db):
    rng = random.Random(20261018)
    a = await create_user("Ada", "ada@example.com", coins=100)
    b = await create_user("Bob", "bob@example.com", coins=100)
    for _ in range(200):
        before = {a.id: await _balance(a.id), b.id: await _balance(b.id)}
        src, dst = rng.sample([a.id, b.id], 2)
        amount = rng.randint(1, 150)
        try:
            if rng.random() < 0.5:
                await coins.adjust_balance(src, amount if rng.random() < 0.4 else -amount)
            else:
                await coins.transfer(src, dst, amount)
                assert sum(before.values()) == await _balance(a.id) + await _balance(b.id)
        except InvalidStateError:
            assert await _balance(a.id) == before[a.id]
            assert await _balance(b.id) == before[b.id]
        assert await _balance(a.id) >= 0
        assert await _balance(b.id) >= 0


@pytest.fixture
def coin_writes(monkeypatch):
    """In-memory balances behind recorders of the session each read and write receives."""
    balances = {101: 300, 102: 50}
    seen = []

    async def get(user_id, session=None):
        seen.append(("read", user_id, session))
        return SimpleNamespace(id=user_id, coins=balances[user_id])

    async def apply_delta(user_id, delta, session=None):
        seen.append(("delta", user_id, session))
        balances[user_id] += delta
        return SimpleNamespace(id=user_id, coins=balances[user_id])

    async def record(user_id, amount, entry_type, reason, session=None, **kwargs):
        seen.append(("ledger", user_id, session))

    monkeypatch.setattr(coins, "User", SimpleNamespace(get=get))
    monkeypatch.setattr(coins, "_apply_delta", apply_delta)
    monkeypatch.setattr(coins.ledger_service, "record", record)
    return seen


async def test_transfer_writes_share_one_transaction(tx_client, coin_writes):
    result = await coins.transfer(101, 102, 100)
    assert result == {"fromBalance": 200, "toBalance": 150, "amount": 100}

    session = tx_client.sessions[0]
    assert coin_writes == [
        ("read", 101, session),
        ("read", 102, session),
        ("delta", 101, session),
        ("delta", 102, session),
        ("ledger", 101, session),
        ("ledger", 102, session),
    ]
    assert tx_client.events == ["start", "commit", "end"]


async def test_transfer_aborts_when_ledger_write_fails(tx_client, coin_writes, monkeypatch):
    async def failing_record(user_id, amount, entry_type, reason, session=None, **kwargs):
        coin_writes.append(("ledger", user_id, session))
        if entry_type == "credit":
            raise RuntimeError("ledger write failed")

    monkeypatch.setattr(coins.ledger_service, "record", failing_record)
    with pytest.raises(RuntimeError, match="ledger write failed"):
        await coins.transfer(101, 102, 100)

    session = tx_client.sessions[0]
    assert all(call[-1] is session for call in coin_writes)
    assert coin_writes[-1] == ("ledger", 102, session)
    assert tx_client.events == ["start", "abort", "end"]


async def test_admin_adjust_writes_share_one_transaction(tx_client, coin_writes):
    user = await coins.admin_adjust(101, -20, admin_id=1)
    assert user.coins == 280

    session = tx_client.sessions[0]
    assert coin_writes == [("delta", 101, session), ("ledger", 101, session)]
    assert tx_client.events == ["start", "commit", "end"]


async def test_admin_adjust_aborts_when_ledger_write_fails(tx_client, coin_writes, monkeypatch):
    async def failing_record(user_id, amount, entry_type, reason, session=None, **kwargs):
        coin_writes.append(("ledger", user_id, session))
        raise RuntimeError("ledger write failed")

    monkeypatch.setattr(coins.ledger_service, "record", failing_record)
    with pytest.raises(RuntimeError, match="ledger write failed"):
        await coins.admin_adjust(101, 20, admin_id=1)

    session = tx_client.sessions[0]
    assert coin_writes == [("delta", 101, session), ("ledger", 101, session)]
    assert tx_client.events == ["start", "abort", "end"]
