from invoicely.models.plan import Plan
from invoicely.models.subscription import Subscription, SubscriptionInvoice
from invoicely.models.business import Business
from invoicely.models.client import Client
from invoicely.models.invoice import Invoice, InvoiceStatus
from invoicely.models.estimate import Estimate
from invoicely.models.receipt import NO_INVOICE, Receipt
from invoicely.models.expense import Expense

__all__ = [
    "Plan",
    "Subscription",
    "SubscriptionInvoice",
    "Business",
    "Client",
    "Invoice",
    "InvoiceStatus",
    "Estimate",
    "Receipt",
    "NO_INVOICE",
    "Expense",
]
