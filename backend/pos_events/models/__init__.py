from .catalog import Branch, Product
from .sales import Sale, SaleItem, PromoCodeGenerationHistory
from .inventory import InventoryHistory
from .events import EventFailure

__all__ = [
    'Branch', 'Product',
    'Sale', 'SaleItem', 'PromoCodeGenerationHistory',
    'InventoryHistory',
    'EventFailure',
]
