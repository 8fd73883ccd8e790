from .allocation import (allocate, allocate_many, recompute_status,
                         refresh_payment_status, remove_allocation)
from .balances import (available_payments_for_customer, get_outstanding,
                       get_remaining, invoice_outstanding,
                       invoice_payment_summary, list_unpaid_invoices,
                       payment_remaining, payment_summary)
from .estimate import convert_estimate_to_invoice, create_estimate
from .invoice import (create_invoice, delete_invoice, set_invoice_status,
                      update_invoice)
from .numbering import issue_document, next_number, preview_number
from .payment import create_payment, delete_payment, update_payment
from .scope import CompanyScope
from .tax import (apply_discount, apply_sales_tax, document_totals,
                  payment_amounts, withholding_split)
