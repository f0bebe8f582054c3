from .masters import Base, EquipmentType
from .auth import User, UserBaseAccess, SessionToken
from .ledger import LedgerEntry, StockPosition
from .movements import (
    Purchase,
    Assignment,
    AssignmentItem,
    Expenditure,
    ExpenditureItem,
    Transfer,
    TransferItem,
)
from .audit import AuditLog

__all__ = [
    'Base', 'EquipmentType',
    'User', 'UserBaseAccess', 'SessionToken',
    'LedgerEntry', 'StockPosition',
    'Purchase', 'Assignment', 'AssignmentItem',
    'Expenditure', 'ExpenditureItem',
    'Transfer', 'TransferItem',
    'AuditLog',
]
