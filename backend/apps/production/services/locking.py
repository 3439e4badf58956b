"""
Per-order serialization.
Every mutating operation on an order takes this row lock first.
"""
from django.core.exceptions import ValidationError
from apps.production.exceptions import OrderNotFound
from apps.production.models import ProductionOrder


def lock_order(order_id) -> ProductionOrder:
    """
    Lock and return the order row. Must be called inside transaction.atomic().

    Raises:
        OrderNotFound: If no order has this id
    """
    try:
        return ProductionOrder.objects.select_for_update().get(id=order_id)
    except (ProductionOrder.DoesNotExist, ValidationError, ValueError):
        raise OrderNotFound()
