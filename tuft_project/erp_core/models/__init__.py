from .account import DEBIT_NORMAL_TYPES, Account, AccountCategory, AccountType
from .auditlog import AuditLog
from .expense import Expense, ExpenseCategory
from .inventory import (InventoryItem, InventoryTransaction, ItemType,
                        MovementType)
from .journal import (EntrySource, EntryStatus, EntryType, JournalEntry,
                      JournalEntryLine, LineType, SourceKind)
from .order import (Client, Dispatch, DispatchStatus, DimensionUnit, Order,
                    OrderItem, Payment, PaymentKind, PaymentMethod)
from .production import (BomLine, CostSnapshot, FinishedProduct,
                         FinishedProductStatus, MaterialConsumption,
                         ProductionJob, QualityStatus)
from .purchase import PurchaseLine, PurchaseOrder, StockLot, Supplier
