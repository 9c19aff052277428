from .enums import Category, RentType, TransactionKind, HistoryViewpoint
from .auth import User, SessionToken
from .catalog import Product
from .ledger import Transaction

__all__ = [
    'Category', 'RentType', 'TransactionKind', 'HistoryViewpoint',
    'User', 'SessionToken',
    'Product',
    'Transaction',
]
