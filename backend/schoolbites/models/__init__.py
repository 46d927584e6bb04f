from .accounts import User
from .schools import School, Child, OffDay
from .orders import Order
from .payments import Payment

__all__ = [
    'User',
    'School', 'Child', 'OffDay',
    'Order',
    'Payment',
]
