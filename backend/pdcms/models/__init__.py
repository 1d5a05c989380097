from .collaborators import Tenant, Invoice, InvoiceStatus, BankAccount
from .pdc import PDC, PDCStatus, NewPaymentMethod
from .events import PDCEvent

__all__ = [
    'Tenant', 'Invoice', 'InvoiceStatus', 'BankAccount',
    'PDC', 'PDCStatus', 'NewPaymentMethod',
    'PDCEvent',
]
