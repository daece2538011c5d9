"""Per-(bank, blood group) stock levels.

credit and debit join the session's current transaction; whoever owns
the unit of work commits it. Both are single guarded statements, so they
stay correct when several processes share the database.
"""
import logging
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.dialects import mysql, postgresql, sqlite

from bloodbank.errors import InsufficientInventoryError, NotFoundError
from bloodbank.locking import KeyedLock
from bloodbank.models import BloodBank, InventoryEntry
from bloodbank.validators import normalize_bg, parse_id, parse_units

logger = logging.getLogger(__name__)

inventory = InventoryEntry.__table__


class InventoryView:
    """Lazily evaluated, restartable view of matching inventory entries.

    Nothing is read until iteration starts, and every iteration runs the
    query again.
    """

    def __init__(self, session, bank_id=None, blood_group=None):
        self._session = session
        self.bank_id = bank_id
        self.blood_group = blood_group

    def _query(self):
        q = self._session.query(InventoryEntry).populate_existing()
        if self.bank_id is not None:
            q = q.filter(InventoryEntry.bank_id == self.bank_id)
        if self.blood_group:
            q = q.filter(InventoryEntry.blood_group == self.blood_group)
        return q.order_by(InventoryEntry.bank_id, InventoryEntry.blood_group)

    def __iter__(self):
        for entry in self._query():
            yield entry

    def total_units(self):
        q = self._session.query(func.coalesce(func.sum(InventoryEntry.available_units), 0))
        if self.bank_id is not None:
            q = q.filter(InventoryEntry.bank_id == self.bank_id)
        if self.blood_group:
            q = q.filter(InventoryEntry.blood_group == self.blood_group)
        return int(q.scalar())


class InventoryLedger:
    def __init__(self, session, locks=None):
        self.session = session
        self.locks = locks if locks is not None else KeyedLock()

    def hold(self, bank_id, blood_group):
        """Serialize work on one inventory key; hold it until the transaction commits."""
        return self.locks.hold((int(bank_id), normalize_bg(blood_group)))

    def credit(self, bank_id, blood_group, units):
        bank_id = parse_id(bank_id, "bank_id")
        bg = normalize_bg(blood_group)
        units = parse_units(units)
        if self.session.get(BloodBank, bank_id) is None:
            raise NotFoundError("Blood bank not found")
        stmt = self._upsert(bank_id, bg, units)
        if stmt is not None:
            self.session.execute(stmt)
        else:
            self._credit_portable(bank_id, bg, units)
        entry = self.entry(bank_id, bg)
        logger.info("Credited %s unit(s) of %s at bank %s, now %s",
                    units, bg, bank_id, entry.available_units)
        return entry

    def debit(self, bank_id, blood_group, units):
        bank_id = parse_id(bank_id, "bank_id")
        bg = normalize_bg(blood_group)
        units = parse_units(units)
        result = self.session.execute(
            update(inventory)
            .where(inventory.c.bank_id == bank_id,
                   inventory.c.blood_group == bg,
                   inventory.c.available_units >= units)
            .values(available_units=inventory.c.available_units - units,
                    updated_at=datetime.utcnow())
        )
        if result.rowcount != 1:
            available = self.available(bank_id, bg)
            logger.warning("Refused debit of %s unit(s) of %s at bank %s: %s available",
                           units, bg, bank_id, available)
            raise InsufficientInventoryError(bank_id, bg, available, units)
        entry = self.entry(bank_id, bg)
        logger.info("Debited %s unit(s) of %s at bank %s, now %s",
                    units, bg, bank_id, entry.available_units)
        return entry

    def query(self, bank_id=None, blood_group=None):
        bank_id = parse_id(bank_id, "bank_id") if bank_id is not None else None
        bg = normalize_bg(blood_group) if blood_group else None
        return InventoryView(self.session, bank_id, bg)

    def entry(self, bank_id, blood_group):
        return (self.session.query(InventoryEntry)
                .populate_existing()
                .filter_by(bank_id=bank_id, blood_group=blood_group)
                .one_or_none())

    def available(self, bank_id, blood_group):
        units = (self.session.query(InventoryEntry.available_units)
                 .filter_by(bank_id=bank_id, blood_group=blood_group)
                 .scalar())
        return int(units or 0)

    def stats(self):
        rows = (self.session.query(InventoryEntry.blood_group,
                                   func.coalesce(func.sum(InventoryEntry.available_units), 0))
                .group_by(InventoryEntry.blood_group)
                .order_by(InventoryEntry.blood_group)
                .all())
        by_group = [{"blood_group": g, "total_units": int(total)} for g, total in rows]
        return {
            "by_blood_group": by_group,
            "total_units": sum(r["total_units"] for r in by_group),
        }

    def _upsert(self, bank_id, bg, units):
        values = {"bank_id": bank_id, "blood_group": bg,
                  "available_units": units, "updated_at": datetime.utcnow()}
        dialect = self.session.get_bind(mapper=InventoryEntry).dialect.name
        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = insert(inventory).values(**values)
            return stmt.on_conflict_do_update(
                index_elements=[inventory.c.bank_id, inventory.c.blood_group],
                set_={"available_units": inventory.c.available_units + stmt.excluded.available_units,
                      "updated_at": stmt.excluded.updated_at},
            )
        if dialect in ("mysql", "mariadb"):
            stmt = mysql.insert(inventory).values(**values)
            return stmt.on_duplicate_key_update(
                available_units=inventory.c.available_units + stmt.inserted.available_units,
                updated_at=stmt.inserted.updated_at,
            )
        return None

    def _credit_portable(self, bank_id, bg, units):
        with self.hold(bank_id, bg):
            result = self.session.execute(
                update(inventory)
                .where(inventory.c.bank_id == bank_id, inventory.c.blood_group == bg)
                .values(available_units=inventory.c.available_units + units,
                        updated_at=datetime.utcnow())
            )
            if result.rowcount == 0:
                self.session.add(InventoryEntry(bank_id, bg, units))
                self.session.flush()
