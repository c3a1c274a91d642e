from .catalog import Store, TankType, InventoryItem, StoreCatalogTank, StoreCatalogItem, StoreAssignment
from .inventory import InventoryAssignment, AssignmentTank, AssignmentItem, InventoryTransaction
from .audit import InventoryStatusHistory

__all__ = [
    'Store', 'TankType', 'InventoryItem', 'StoreCatalogTank', 'StoreCatalogItem', 'StoreAssignment',
    'InventoryAssignment', 'AssignmentTank', 'AssignmentItem', 'InventoryTransaction',
    'InventoryStatusHistory',
]
