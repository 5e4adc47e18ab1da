from retos.db.models.admin_actions import AdminAction
from retos.db.models.entitlements import Entitlement
from retos.db.models.grant_outbox import GrantOutboxRow
from retos.db.models.orders import Order

__all__ = [
    "AdminAction",
    "Entitlement",
    "GrantOutboxRow",
    "Order",
]
