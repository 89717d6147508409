from .catalog import Category, Product, Warehouse, Supplier, Employee
from .stock import StockRecord, TransactionRecord, ImmutableRecordError
from .orders import PurchaseOrder
from .history import CommandHistory

__all__ = [
    'Category', 'Product', 'Warehouse', 'Supplier', 'Employee',
    'StockRecord', 'TransactionRecord', 'ImmutableRecordError',
    'PurchaseOrder',
    'CommandHistory',
]
