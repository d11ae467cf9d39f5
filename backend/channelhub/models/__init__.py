from .accounts import Account, User, AccountMembership, SessionToken, MEMBERSHIP_ROLES
from .catalog import Product, Inventory, DEFAULT_WAREHOUSE
from .orders import Order, OrderItem, MANUAL_ORDER_TYPES, ORDER_STATUSES, ORDER_STATUS_FLOW
from .channels import Channel, SyncLog, CHANNEL_TYPES, CHANNEL_STATUSES, SYNC_LOG_STATUSES

__all__ = [
    'Account', 'User', 'AccountMembership', 'SessionToken', 'MEMBERSHIP_ROLES',
    'Product', 'Inventory', 'DEFAULT_WAREHOUSE',
    'Order', 'OrderItem', 'MANUAL_ORDER_TYPES', 'ORDER_STATUSES', 'ORDER_STATUS_FLOW',
    'Channel', 'SyncLog', 'CHANNEL_TYPES', 'CHANNEL_STATUSES', 'SYNC_LOG_STATUSES',
]
