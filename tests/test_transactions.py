import pytest

from app.db.transactions import transaction

pytestmark = pytest.mark.asyncio


async def test_commits_on_success(transactions_on, fake_client):
    async with transaction(fake_client) as session:
        assert session is fake_client.sessions[0]
    assert fake_client.events == ["start", "commit", "end"]


async def test_aborts_and_reraises_on_error(transactions_on, fake_client):
    with pytest.raises(RuntimeError):
        async with transaction(fake_client):
            raise RuntimeError("write failed")
    assert fake_client.events == ["start", "abort", "end"]


async def test_default_client_is_used(tx_client):
    async with transaction() as session:
        assert session is tx_client.sessions[0]
    assert tx_client.events == ["start", "commit", "end"]


async def test_disabled_yields_no_session(fake_client):
    async with transaction(fake_client) as session:
        assert session is None
    assert fake_client.events == []
