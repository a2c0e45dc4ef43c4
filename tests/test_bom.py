"""Recipe (bill of materials) registry."""

import logging
from decimal import Decimal
from uuid import uuid4

import pytest

from core.errors import DuplicateMappingError, NotFoundError, ValidationError
from services import bom


class TestUpsert:
    async def test_entries_in_insertion_order(self, db, make_item):
        beans = await make_item("Coffee beans", quantity=1000)
        milk = await make_item("Milk", unit="ml", quantity=5000)

        await bom.upsert(db, "latte", beans.id, 18, "grams")
        await bom.upsert(db, "latte", milk.id, 200, "ml")

        entries = await bom.entries_for(db, "latte")
        assert [e.inventory_item_id for e in entries] == [beans.id, milk.id]
        assert [e.position for e in entries] == [0, 1]

    async def test_duplicate_pair_rejected(self, db, make_item):
        beans = await make_item("Coffee beans", quantity=1000)
        await bom.upsert(db, "espresso", beans.id, 18, "grams")

        with pytest.raises(DuplicateMappingError):
            await bom.upsert(db, "espresso", beans.id, 20, "grams")

    async def test_unknown_inventory_item(self, db):
        with pytest.raises(NotFoundError):
            await bom.upsert(db, "espresso", uuid4(), 18, "grams")

    @pytest.mark.parametrize("qty", [0, -1, "0.0001"])
    async def test_quantity_must_be_positive(self, db, make_item, qty):
        beans = await make_item("Coffee beans", quantity=1000)
        with pytest.raises(ValidationError):
            await bom.upsert(db, "espresso", beans.id, qty, "grams")

    async def test_integer_menu_ids_are_opaque_keys(self, db, make_item):
        beans = await make_item("Coffee beans", quantity=1000)
        await bom.upsert(db, 17, beans.id, 18, "grams")
        assert len(await bom.entries_for(db, "17")) == 1

    async def test_unknown_menu_item_has_empty_recipe(self, db):
        assert await bom.entries_for(db, "not-on-the-menu") == []

    async def test_quantity_below_stock_precision_warns(self, db, make_item, caplog):
        saffron = await make_item("Saffron", unit="kilograms", quantity=1)

        with caplog.at_level(logging.WARNING, logger="services.bom"):
            await bom.upsert(db, "paella", saffron.id, "0.4", "grams")

        assert any("rounds to 0 kilograms" in r.getMessage() for r in caplog.records)

    async def test_representable_quantity_does_not_warn(self, db, make_item, caplog):
        flour = await make_item("Flour", unit="kilograms", quantity=1)

        with caplog.at_level(logging.WARNING, logger="services.bom"):
            await bom.upsert(db, "bread", flour.id, 5, "grams")

        assert not [r for r in caplog.records if r.name == "services.bom"]


class TestSetRecipe:
    async def test_replace_is_idempotent_and_keeps_order(self, db, make_item, make_recipe):
        milk = await make_item("Milk", unit="ml", quantity=5000)
        beans = await make_item("Coffee beans", quantity=1000)
        ingredients = [(milk.id, 150, "ml"), (beans.id, "0.018", "kilograms")]

        def shape(entries):
            return [(e.inventory_item_id, e.quantity_required, e.unit, e.position) for e in entries]

        first = shape(await make_recipe("cappuccino", *ingredients))
        second = await make_recipe("cappuccino", *ingredients)

        assert first == shape(second)
        assert shape(second) == [
            (milk.id, Decimal("150"), "ml", 0),
            (beans.id, Decimal("0.018"), "kilograms", 1),
        ]
        assert len(await bom.entries_for(db, "cappuccino")) == 2

    async def test_replace_drops_missing_ingredients(self, db, make_item, make_recipe):
        milk = await make_item("Milk", unit="ml", quantity=5000)
        beans = await make_item("Coffee beans", quantity=1000)
        await make_recipe("latte", (milk.id, 200, "ml"), (beans.id, 18, "grams"))

        entries = await make_recipe("latte", (beans.id, 20, "grams"))

        assert [(e.inventory_item_id, e.quantity_required) for e in entries] == [(beans.id, Decimal("20"))]

    async def test_empty_list_clears_recipe(self, db, make_item, make_recipe):
        beans = await make_item("Coffee beans", quantity=1000)
        await make_recipe("espresso", (beans.id, 18, "grams"))

        assert await make_recipe("espresso") == []

    async def test_duplicate_ingredient_rejected(self, db, make_item):
        beans = await make_item("Coffee beans", quantity=1000)
        with pytest.raises(ValidationError):
            await bom.set_recipe(
                db,
                "espresso",
                [
                    {"inventory_item_id": beans.id, "quantity_required": 18, "unit": "grams"},
                    {"inventory_item_id": beans.id, "quantity_required": 9, "unit": "grams"},
                ],
            )

    async def test_failed_replace_leaves_recipe_untouched(self, db, make_item, make_recipe):
        beans = await make_item("Coffee beans", quantity=1000)
        await make_recipe("espresso", (beans.id, 18, "grams"))

        with pytest.raises(NotFoundError):
            await bom.set_recipe(
                db,
                "espresso",
                [{"inventory_item_id": uuid4(), "quantity_required": 1, "unit": "grams"}],
            )

        entries = await bom.entries_for(db, "espresso")
        assert [(e.inventory_item_id, e.quantity_required) for e in entries] == [(beans.id, Decimal("18"))]


class TestRemove:
    async def test_update_and_remove_entry(self, db, make_item, make_recipe):
        beans = await make_item("Coffee beans", quantity=1000)
        (entry,) = await make_recipe("espresso", (beans.id, 18, "grams"))

        updated = await bom.update_entry(db, entry.id, quantity_required=21)
        assert updated.quantity_required == Decimal("21")

        await bom.remove(db, entry.id)
        assert await bom.entries_for(db, "espresso") == []

    async def test_remove_all(self, db, make_item, make_recipe):
        milk = await make_item("Milk", unit="ml", quantity=5000)
        beans = await make_item("Coffee beans", quantity=1000)
        await make_recipe("latte", (milk.id, 200, "ml"), (beans.id, 18, "grams"))

        assert await bom.remove_all(db, "latte") == 2
        assert await bom.entries_for(db, "latte") == []
