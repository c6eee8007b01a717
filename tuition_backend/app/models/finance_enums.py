"""
Finance enumerations.
"""

import enum


class InvoiceStatus(str, enum.Enum):
    """Invoice status enumeration."""
    PENDING = "pending"  # Issued, nothing paid
    PARTIAL = "partial"  # 0 < paid < total
    PAID = "paid"  # Nothing remaining
    OVERDUE = "overdue"  # Past due date, nothing paid


class LedgerEntryType(str, enum.Enum):
    """Ledger entry type enumeration."""
    INVOICE = "invoice"  # Fees billed (debit receivable)
    PAYMENT = "payment"  # Fees collected (credit receivable)
    PAYMENT_REVERSAL = "payment_reversal"  # Collection undone (debit receivable)
    INVOICE_VOID = "invoice_void"  # Billing cancelled (credit receivable)
    EXPENSE = "expense"  # Money spent (debit expenses)


class PaymentMethod(str, enum.Enum):
    """Payment method enumeration."""
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    ONLINE = "online"


class GenerationStatus(str, enum.Enum):
    """Outcome of an invoice generation run."""
    SUCCESS = "success"
    EMPTY = "empty"


class LedgerAccountCode:
    """Default chart of accounts created for every center."""
    FEES_RECEIVABLE = "1200"
    OPERATING_EXPENSES = "5000"

    NAMES = {
        FEES_RECEIVABLE: "Fees Receivable",
        OPERATING_EXPENSES: "Operating Expenses",
    }
