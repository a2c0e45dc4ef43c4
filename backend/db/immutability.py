"""ORM guards that keep stock ledger rows write-once."""

from sqlalchemy import event

from core.errors import ImmutableLedgerError
from db.inventory.ledger import LedgerEntry


def _reject_ledger_update(mapper, connection, target):
    raise ImmutableLedgerError(f"Ledger entry {target.id} is immutable and cannot be updated")


def _reject_ledger_delete(mapper, connection, target):
    raise ImmutableLedgerError(f"Ledger entry {target.id} is immutable and cannot be deleted")


def register_immutability_listeners() -> None:
    if not event.contains(LedgerEntry, "before_update", _reject_ledger_update):
        event.listen(LedgerEntry, "before_update", _reject_ledger_update)
    if not event.contains(LedgerEntry, "before_delete", _reject_ledger_delete):
        event.listen(LedgerEntry, "before_delete", _reject_ledger_delete)
