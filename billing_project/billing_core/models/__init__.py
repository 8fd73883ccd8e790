from .allocation import Allocation
from .auditlog import AuditAction, AuditLog
from .company import Company
from .customer import Customer
from .estimate import Estimate, EstimateStatus
from .invoice import DiscountType, Invoice, InvoiceStatus
from .payment import PAYMENT_METHODS, Payment, PaymentStatus
from .tax_rate import TaxRate, TaxRateKind
