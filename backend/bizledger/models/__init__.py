from .sequences import IdentifierSequence
from .hr import Employee, Leave, EmployeeRequest
from .expenses import ExpenseCategory, Expense, ExpensePayment
from .invoices import Invoice, InvoiceLine, InvoicePayment
from .manufacturing import RawMaterial, Recipe, RecipeLine, ManufacturingOrder, ProductionRun

__all__ = [
    'IdentifierSequence',
    'Employee', 'Leave', 'EmployeeRequest',
    'ExpenseCategory', 'Expense', 'ExpensePayment',
    'Invoice', 'InvoiceLine', 'InvoicePayment',
    'RawMaterial', 'Recipe', 'RecipeLine', 'ManufacturingOrder', 'ProductionRun',
]
