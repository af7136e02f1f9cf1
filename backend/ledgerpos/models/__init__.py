from .tenancy import Company
from .accounts import Entity, Account, EntityType, AccountStatus
from .inventory import Product, InventoryRecord, InventoryBatch, InventoryUnit, UnitStatus
from .sales import SaleTransaction, SaleLine, Payment, PaymentMethod, PaymentStatus
from .documents import ReturnTransaction, ReturnLine, RefundMethod, DocumentSequence, AuditEvent
from .ledger import LedgerEntry, LedgerAccount, EntryType, TransactionType, ReferenceType

__all__ = [
    'Company',
    'Entity', 'Account', 'EntityType', 'AccountStatus',
    'Product', 'InventoryRecord', 'InventoryBatch', 'InventoryUnit', 'UnitStatus',
    'SaleTransaction', 'SaleLine', 'Payment', 'PaymentMethod', 'PaymentStatus',
    'ReturnTransaction', 'ReturnLine', 'RefundMethod', 'DocumentSequence', 'AuditEvent',
    'LedgerEntry', 'LedgerAccount', 'EntryType', 'TransactionType', 'ReferenceType',
]
