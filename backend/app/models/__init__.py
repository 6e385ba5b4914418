from .auth import User, SessionToken
from .tenancy import Shop, ShopMember
from .inventory import Saree, StockMovement
from .customers import Customer
from .sales import Bill, BillItem, Payment, EditRequest
from .purchasing import Supplier, PurchaseOrder, PurchaseOrderItem

__all__ = [
    'User', 'SessionToken',
    'Shop', 'ShopMember',
    'Saree', 'StockMovement',
    'Customer',
    'Bill', 'BillItem', 'Payment', 'EditRequest',
    'Supplier', 'PurchaseOrder', 'PurchaseOrderItem',
]
