from stockledger.models.user import User
from stockledger.models.location import Location
from stockledger.models.catalog import ItemCategory, UnitOfMeasure
from stockledger.models.stock_item import StockItem
from stockledger.models.ledger import StockLedgerEntry
from stockledger.models.requisition import Requisition
from stockledger.models.audit_log import AuditLog

from stockledger.db.guards import register_write_guards

register_write_guards()
