"""
Order consumption: recipe lookup, unit conversion, clamped deduction and
the SALE ledger entries that pair with every deduction.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from core.config import EngineConfig
from core.errors import InsufficientStockError, OrderNotCompletedError, UnitMismatchError
from db.inventory.ledger import LedgerEntry
from db.order import Order
from services import catalog, ledger


async def _quantity(db, item_id) -> Decimal:
    return (await catalog.get(db, item_id)).quantity


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestDeduction:
    async def test_flour_short_of_recipe_is_clamped(self, db, make_item, make_recipe, place):
        flour = await make_item("Flour", unit="grams", quantity=150)
        await make_recipe("croissant", (flour.id, 200, "grams"))

        order, result = await place({"croissant": 1})

        assert await _quantity(db, flour.id) == Decimal("0")
        (d,) = result.deductions
        assert (d.requested, d.deducted, d.clamped) == (Decimal("200"), Decimal("150"), True)
        assert d.shortfall == Decimal("50")

        sales = await ledger.entries_for_reference(db, "ORDER", str(order.id))
        assert [(e.kind, e.change, e.unit) for e in sales] == [("SALE", Decimal("-150"), "grams")]
        assert "only 150.000 available" in sales[0].note

    async def test_clamped_to_what_is_on_hand(self, db, make_item, make_recipe, place):
        cups = await make_item("Cups", unit="pieces", quantity=5)
        await make_recipe("coffee", (cups.id, 1, "pieces"))

        _, result = await place({"coffee": 8})

        assert await _quantity(db, cups.id) == Decimal("0")
        assert result.deductions[0].deducted == Decimal("5")
        assert len(result.clamped) == 1

    async def test_recipe_scaled_and_converted(self, db, make_item, make_recipe, place):
        flour = await make_item("Flour", unit="grams", quantity=1000)
        milk = await make_item("Milk", unit="liters", quantity=2)
        await make_recipe("pancakes", (flour.id, "0.2", "kilograms"), (milk.id, 150, "ml"))

        _, result = await place({"pancakes": 2})

        assert await _quantity(db, flour.id) == Decimal("600")
        assert await _quantity(db, milk.id) == Decimal("1.7")
        assert result.totals_by_item() == {flour.id: Decimal("400"), milk.id: Decimal("0.3")}
        assert not result.clamped

    async def test_menu_item_without_recipe_deducts_nothing(self, db, make_item, place):
        flour = await make_item("Flour", unit="grams", quantity=1000)

        order, result = await place({"bottled-water": 3})

        assert result.deductions == [] and result.skipped == []
        assert await _quantity(db, flour.id) == Decimal("1000")
        assert await db.get(Order, order.id) is not None

    async def test_conservation_across_lines(self, db, make_item, make_recipe, place):
        beans = await make_item("Coffee beans", unit="grams", quantity=500)
        milk = await make_item("Milk", unit="ml", quantity=3000)
        await make_recipe("espresso", (beans.id, 18, "grams"))
        await make_recipe("latte", (beans.id, 18, "grams"), (milk.id, 220, "ml"))

        order, result = await place({"espresso": 2, "latte": 3})

        totals = result.totals_by_item()
        assert totals[beans.id] == Decimal("90")
        assert totals[milk.id] == Decimal("660")

        for item_id, before in ((beans.id, Decimal("500")), (milk.id, Decimal("3000"))):
            observed = before - await _quantity(db, item_id)
            logged = await ledger.summarize(db, item_id, kind="SALE")
            assert observed == totals[item_id] == -logged

        sales = await ledger.entries_for_reference(db, "ORDER", str(order.id))
        assert len(sales) == len(result.deductions) == 3
        assert {e.created_by for e in sales} == {"cashier"}

    async def test_nothing_left_still_logs_zero_sale(self, db, make_item, make_recipe, place):
        syrup = await make_item("Vanilla syrup", unit="ml", quantity=0)
        await make_recipe("vanilla-latte", (syrup.id, 15, "ml"))

        order, result = await place({"vanilla-latte": 1})

        assert result.deductions[0].deducted == Decimal("0")
        sales = await ledger.entries_for_reference(db, "ORDER", str(order.id))
        assert [e.change for e in sales] == [Decimal("0")]

    async def test_conservation_over_order_sequence(self, db, make_item, make_recipe, place):
        flour = await make_item("Flour", unit="grams", quantity=100)
        await make_recipe("muffin", (flour.id, 30, "grams"))
        await make_recipe("loaf", (flour.id, "0.05", "kilograms"))

        expected = [Decimal("70"), Decimal("40"), Decimal("0"), Decimal("0")]
        for lines, left in zip(({"muffin": 1}, {"muffin": 1}, {"loaf": 1}, {"muffin": 2}), expected):
            await place(lines)

            current = await _quantity(db, flour.id)
            sold = -await ledger.summarize(db, flour.id, kind="SALE")
            assert current == left
            assert Decimal("100") - sold == current

        assert await ledger.summarize(db, flour.id, kind="SALE") == Decimal("-100")


class TestPolicies:
    async def test_unit_mismatch_skipped_by_default(self, db, make_item, make_recipe, place):
        sugar = await make_item("Sugar", unit="grams", quantity=100)
        beans = await make_item("Coffee beans", unit="grams", quantity=100)
        await make_recipe("sweet-espresso", (sugar.id, 2, "pieces"), (beans.id, 18, "grams"))

        _, result = await place({"sweet-espresso": 1})

        (skipped,) = result.skipped
        assert skipped.inventory_item_id == sugar.id
        assert "different unit families" in skipped.reason
        assert await _quantity(db, sugar.id) == Decimal("100")
        assert await _quantity(db, beans.id) == Decimal("82")

    async def test_unit_mismatch_rejected(self, db, make_item, make_recipe, place):
        sugar = await make_item("Sugar", unit="grams", quantity=100)
        sugar_id = sugar.id
        await make_recipe("sweet-espresso", (sugar_id, 2, "pieces"))

        with pytest.raises(UnitMismatchError):
            await place({"sweet-espresso": 1}, config=EngineConfig(unit_mismatch_policy="reject"))

        assert await _count(db, Order) == 0

    async def test_insufficient_stock_rejected(self, db, make_item, make_recipe, place):
        flour = await make_item("Flour", unit="grams", quantity=1000)
        eggs = await make_item("Eggs", unit="pieces", quantity=1)
        flour_id, eggs_id = flour.id, eggs.id
        await make_recipe("cake", (flour_id, 250, "grams"), (eggs_id, 2, "pieces"))

        with pytest.raises(InsufficientStockError) as exc:
            await place({"cake": 1}, config=EngineConfig(insufficient_stock_policy="reject"))

        assert exc.value.item_name == "Eggs"
        # flour was deducted before eggs failed; the rollback undoes it
        assert await _quantity(db, flour_id) == Decimal("1000")
        assert await _quantity(db, eggs_id) == Decimal("1")
        assert await _count(db, Order) == 0


class TestAtomicity:
    async def test_storage_failure_rolls_back_everything(self, db, make_item, make_recipe, place, monkeypatch):
        beans = await make_item("Coffee beans", unit="grams", quantity=500)
        milk = await make_item("Milk", unit="ml", quantity=3000)
        beans_id, milk_id = beans.id, milk.id
        await make_recipe("latte", (beans_id, 18, "grams"), (milk_id, 220, "ml"))
        entries_before = await _count(db, LedgerEntry)

        real_append = ledger.append
        calls = []

        async def flaky_append(*args, **kwargs):
            calls.append(kwargs["kind"])
            if len(calls) == 2:
                raise OperationalError("INSERT INTO stock_ledger", {}, Exception("disk I/O error"))
            return await real_append(*args, **kwargs)

        monkeypatch.setattr(ledger, "append", flaky_append)

        with pytest.raises(OrderNotCompletedError):
            await place({"latte": 1})

        assert calls == ["SALE", "SALE"]
        assert await _quantity(db, beans_id) == Decimal("500")
        assert await _quantity(db, milk_id) == Decimal("3000")
        assert await _count(db, Order) == 0
        assert await _count(db, LedgerEntry) == entries_before

    async def test_unexpected_error_rolls_back_before_next_commit(self, db, make_item, make_recipe, place, monkeypatch):
        beans = await make_item("Coffee beans", unit="grams", quantity=500)
        milk = await make_item("Milk", unit="ml", quantity=3000)
        beans_id, milk_id = beans.id, milk.id
        await make_recipe("latte", (beans_id, 18, "grams"), (milk_id, 220, "ml"))

        real_append = ledger.append
        calls = []

        async def buggy_append(*args, **kwargs):
            calls.append(kwargs["kind"])
            if len(calls) == 2:
                raise RuntimeError("unexpected")
            return await real_append(*args, **kwargs)

        monkeypatch.setattr(ledger, "append", buggy_append)

        with pytest.raises(OrderNotCompletedError) as exc:
            await place({"latte": 1})
        assert isinstance(exc.value.__cause__, RuntimeError)

        # a later commit on the same session must not persist the partial order
        await db.commit()

        assert await _count(db, Order) == 0
        assert await _quantity(db, beans_id) == Decimal("500")
        assert await _quantity(db, milk_id) == Decimal("3000")
