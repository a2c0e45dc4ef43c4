"""
Inventory (single location).

Models:
- InventoryItem (raw material with on-hand quantity in its stock unit)
- BomEntry (menu item -> inventory item recipe line)
- LedgerEntry (append-only record of every quantity change)
"""
