from .requests import TransactionRequest, TANK_FULL, TANK_EMPTY
from .strategies import Quantities, TransactionStrategy, STRATEGIES, get_strategy, supported_transaction_types
from .processor import TransactionProcessor
from .service import InventoryTransactionService

__all__ = [
    'TransactionRequest', 'TANK_FULL', 'TANK_EMPTY',
    'Quantities', 'TransactionStrategy', 'STRATEGIES', 'get_strategy', 'supported_transaction_types',
    'TransactionProcessor', 'InventoryTransactionService',
]
