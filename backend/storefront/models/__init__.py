from .auth import User, SessionToken
from .inventory import Product
from .ledger import Transaction, TransactionType

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Transaction', 'TransactionType',
]
