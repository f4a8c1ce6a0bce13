from stockbook.models.user import User
from stockbook.models.business import Business
from stockbook.models.audit_log import AuditLog
from stockbook.models.supplier import Supplier
from stockbook.models.product import Product
from stockbook.models.inventory import InventoryLedger
from stockbook.models.sales import Sale
from stockbook.models.purchase import Purchase
from stockbook.models.expense import Expense
from stockbook.models.ai_insight import AIInsightLog
from stockbook.models.refresh_token import RefreshToken
