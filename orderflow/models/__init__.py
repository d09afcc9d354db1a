from orderflow.models.tenant import Tenant
from orderflow.models.tenant_user import TenantUser
from orderflow.models.platform_admin import PlatformAdmin
from orderflow.models.order import Order
from orderflow.models.order_item import OrderItem
from orderflow.models.payment_method import PaymentMethod
from orderflow.models.telegram_subscriber import TelegramSubscriber
