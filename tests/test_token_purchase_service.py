"""
Token purchase service: creation, lookups and first-write-wins fulfillment,
run against an in-memory SQLite database.
"""
import uuid

import pytest
from sqlalchemy import event

from app.core.exceptions import TokenPurchaseNotFound
from app.modules.token_purchase import models, service
from conftest import WALLET_A, WALLET_B, WALLET_C

def ids_of(purchases):
    return {p.id for p in purchases}

class TestCreateAndLookup:

    async def test_new_purchase_is_pending_without_tx_hash(self, make_purchase):
        purchase = await make_purchase(payment_tx_hash="0xpay")

        assert purchase.id is not None
        assert purchase.fulfilled is False
        assert purchase.tx_hash is None
        assert purchase.payment_tx_hash == "0xpay"
        assert purchase.selected_payment_token == models.PaymentToken.ETH
        assert purchase.created_at is not None

    async def test_same_wallet_creates_separate_records(self, db, make_purchase):
        first = await make_purchase(WALLET_A)
        second = await make_purchase(WALLET_A)

        assert first.id != second.id
        assert ids_of(await service.get_token_purchases_by_wallet(db, WALLET_A)) == {first.id, second.id}

    async def test_get_by_id(self, db, make_purchase):
        purchase = await make_purchase()
        found = await service.get_token_purchase_by_id(db, str(purchase.id))
        assert found.id == purchase.id

    async def test_get_by_unknown_id_raises_not_found(self, db):
        with pytest.raises(TokenPurchaseNotFound) as exc:
            await service.get_token_purchase_by_id(db, str(uuid.uuid4()))
        assert exc.value.status_code == 404

    async def test_get_by_malformed_id_raises_not_found(self, db):
        with pytest.raises(TokenPurchaseNotFound):
            await service.get_token_purchase_by_id(db, "60d21b4667d0d8992e610c85")

    async def test_wallet_lookup_is_exact_and_may_be_empty(self, db, make_purchase):
        await make_purchase(WALLET_A)

        assert await service.get_token_purchases_by_wallet(db, WALLET_A.lower()) == []
        assert await service.get_token_purchases_by_wallet(db, WALLET_B) == []

    async def test_pending_and_fulfilled_partition_all(self, db, make_purchase):
        purchases = [await make_purchase(w) for w in (WALLET_A, WALLET_B, WALLET_C, WALLET_A)]
        await service.fulfill_token_purchase(db, str(purchases[1].id), "0xhash")

        pending = await service.get_pending_token_purchases(db)
        fulfilled = await service.get_fulfilled_token_purchases(db)
        everything = await service.get_all_token_purchases(db)

        assert ids_of(pending) | ids_of(fulfilled) == ids_of(everything)
        assert ids_of(pending) & ids_of(fulfilled) == set()
        assert ids_of(fulfilled) == {purchases[1].id}

class TestFulfillOne:

    async def test_fulfill_then_refulfill_keeps_first_hash(self, db, make_purchase):
        purchase = await make_purchase(WALLET_A, amount="1000000000000000000", payment_amount="0.5")

        first = await service.fulfill_token_purchase(db, str(purchase.id), "0xhash1")
        assert first.fulfilled is True
        assert first.tx_hash == "0xhash1"

        second = await service.fulfill_token_purchase(db, str(purchase.id), "0xhash2")
        assert second.fulfilled is True
        assert second.tx_hash == "0xhash1"

        stored = await service.get_token_purchase_by_id(db, str(purchase.id))
        assert stored.tx_hash == "0xhash1"

    async def test_fulfill_unknown_id_raises_not_found(self, db):
        with pytest.raises(TokenPurchaseNotFound):
            await service.fulfill_token_purchase(db, str(uuid.uuid4()), "0xhash")

    async def test_concurrent_fulfillment_keeps_first_hash(self, db, session_factory, make_purchase):
        purchase = await make_purchase()
        stale = await service.get_token_purchase_by_id(db, str(purchase.id))

        # Another request fulfills the record after this session read it
        async with session_factory() as other:
            await service.fulfill_token_purchase(other, str(purchase.id), "0xwinner")

        [result] = await service._mark_fulfilled(db, [stale], "0xloser")
        assert result.fulfilled is True
        assert result.tx_hash == "0xwinner"

class TestBatchFulfillment:

    async def test_fulfill_by_wallet_only_touches_that_wallet(self, db, make_purchase):
        a1 = await make_purchase(WALLET_A)
        a2 = await make_purchase(WALLET_A)
        b1 = await make_purchase(WALLET_B)

        updated = await service.fulfill_by_wallet(db, WALLET_A, "0xhashA")

        assert ids_of(updated) == {a1.id, a2.id}
        assert all(p.fulfilled and p.tx_hash == "0xhashA" for p in updated)
        assert ids_of(await service.get_pending_token_purchases(db)) == {b1.id}

    async def test_fulfill_by_wallet_skips_already_fulfilled(self, db, make_purchase):
        done = await make_purchase(WALLET_A)
        await service.fulfill_token_purchase(db, str(done.id), "0xold")
        open_ = await make_purchase(WALLET_A)

        updated = await service.fulfill_by_wallet(db, WALLET_A, "0xnew")

        assert ids_of(updated) == {open_.id}
        assert (await service.get_token_purchase_by_id(db, str(done.id))).tx_hash == "0xold"

    async def test_fulfill_by_wallet_with_nothing_pending_returns_empty(self, db):
        assert await service.fulfill_by_wallet(db, WALLET_C, "0xhash") == []

    async def test_fulfill_by_ids_preserves_order_and_skips_fulfilled(self, db, make_purchase):
        p1 = await make_purchase(WALLET_A)
        p2 = await make_purchase(WALLET_B)
        p3 = await make_purchase(WALLET_C)
        await service.fulfill_token_purchase(db, str(p2.id), "0xearlier")

        ids = [str(p3.id), str(p2.id), str(p1.id)]
        updated = await service.fulfill_by_ids(db, ids, "0xbatch")

        assert [str(p.id) for p in updated] == ids
        assert [p.tx_hash for p in updated] == ["0xbatch", "0xearlier", "0xbatch"]
        assert all(p.fulfilled for p in updated)

    async def test_fulfill_by_ids_with_unknown_id_fails_whole_batch(self, db, make_purchase):
        p1 = await make_purchase(WALLET_A)

        with pytest.raises(TokenPurchaseNotFound):
            await service.fulfill_by_ids(db, [str(p1.id), str(uuid.uuid4())], "0xbatch")

        # Lookups run before any write
        assert (await service.get_token_purchase_by_id(db, str(p1.id))).fulfilled is False

    async def test_fulfill_by_wallets(self, db, make_purchase):
        a = await make_purchase(WALLET_A)
        b = await make_purchase(WALLET_B)
        c = await make_purchase(WALLET_C)

        updated = await service.fulfill_by_wallets(db, [WALLET_A, WALLET_B], "0xmulti")

        assert ids_of(updated) == {a.id, b.id}
        assert {p.tx_hash for p in updated} == {"0xmulti"}
        assert ids_of(await service.get_pending_token_purchases(db)) == {c.id}

    async def test_fulfill_by_wallets_with_nothing_pending_returns_empty(self, db):
        assert await service.fulfill_by_wallets(db, [WALLET_A, WALLET_B], "0xhash") == []

    async def test_fulfill_all_pending(self, db, make_purchase):
        a = await make_purchase(WALLET_A)
        b = await make_purchase(WALLET_B)

        updated = await service.fulfill_all_pending(db, "0xhashX")

        assert ids_of(updated) == {a.id, b.id}
        assert all(p.fulfilled and p.tx_hash == "0xhashX" for p in updated)
        assert await service.get_pending_token_purchases(db) == []

    async def test_fulfill_all_pending_with_nothing_pending_returns_empty(self, db, make_purchase):
        purchase = await make_purchase()
        await service.fulfill_token_purchase(db, str(purchase.id), "0xfirst")

        assert await service.fulfill_all_pending(db, "0xsecond") == []
        assert (await service.get_token_purchase_by_id(db, str(purchase.id))).tx_hash == "0xfirst"

class TestLargeBatches:

    @pytest.fixture
    def executed(self, engine):
        statements = []

        def record(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(engine.sync_engine, "before_cursor_execute", record)
        yield statements
        event.remove(engine.sync_engine, "before_cursor_execute", record)

    async def test_fulfill_all_pending_splits_ids_into_chunks(self, db, make_purchase, executed, monkeypatch):
        monkeypatch.setattr(service, "ID_CHUNK_SIZE", 2)
        purchases = [await make_purchase(w) for w in (WALLET_A, WALLET_B, WALLET_C, WALLET_A, WALLET_B)]
        executed.clear()

        updated = await service.fulfill_all_pending(db, "0xbulk")

        assert ids_of(updated) == ids_of(purchases)
        assert all(p.fulfilled and p.tx_hash == "0xbulk" for p in updated)
        assert len([s for s in executed if s.lstrip().upper().startswith("UPDATE")]) == 3
        assert await service.get_pending_token_purchases(db) == []

    async def test_fulfill_by_ids_keeps_order_across_chunks(self, db, make_purchase, monkeypatch):
        monkeypatch.setattr(service, "ID_CHUNK_SIZE", 2)
        purchases = [await make_purchase() for _ in range(5)]
        await service.fulfill_token_purchase(db, str(purchases[3].id), "0xearlier")

        ids = [str(p.id) for p in reversed(purchases)]
        updated = await service.fulfill_by_ids(db, ids, "0xbatch")

        assert [str(p.id) for p in updated] == ids
        assert [p.tx_hash for p in updated] == ["0xbatch", "0xearlier", "0xbatch", "0xbatch", "0xbatch"]
