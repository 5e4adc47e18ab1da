from retos.db.repo.admin_actions_repo import AdminActionsRepo
from retos.db.repo.entitlements_repo import EntitlementsRepo
from retos.db.repo.grant_outbox_repo import GrantOutboxRepo
from retos.db.repo.orders_repo import OrdersRepo

__all__ = [
    "AdminActionsRepo",
    "EntitlementsRepo",
    "GrantOutboxRepo",
    "OrdersRepo",
]
