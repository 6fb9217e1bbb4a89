import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from .models import Product, StockMovement

logger = logging.getLogger(__name__)


def post_movement(product, movement_type, reference, quantity_in=0, quantity_out=0,
                  warehouse=None, date=None, notes='', user=None):
    """
    Write one stock card line and update the product's quantity on hand.

    Services carry no stock and are ignored (None is returned).
    """
    if product is None or product.is_service:
        return None

    quantity_in = Decimal(str(quantity_in))
    quantity_out = Decimal(str(quantity_out))
    with transaction.atomic():
        locked = Product.objects.select_for_update().get(pk=product.pk)
        balance = locked.stock_quantity + quantity_in - quantity_out
        movement = StockMovement.objects.create(
            product=locked,
            warehouse=warehouse,
            date=date or timezone.now().date(),
            movement_type=movement_type,
            reference=reference,
            quantity_in=quantity_in,
            quantity_out=quantity_out,
            balance=balance,
            notes=notes,
            created_by=user,
        )
        locked.stock_quantity = balance
        locked.save(update_fields=['stock_quantity', 'updated_at'])

    product.stock_quantity = balance
    if balance < 0:
        logger.warning("Stock of %s is negative (%s) after %s", product.sku, balance, reference)
    return movement


def post_document_lines(lines, movement_type, reference, outgoing, warehouse=None, notes='', user=None):
    """Post one movement per line of a document (delivery, return, reception)"""
    movements = []
    for line in lines:
        quantity = line.quantity
        movement = post_movement(
            line.product,
            movement_type,
            reference,
            quantity_in=0 if outgoing else quantity,
            quantity_out=quantity if outgoing else 0,
            warehouse=warehouse,
            notes=notes,
            user=user,
        )
        if movement is not None:
            movements.append(movement)
    logger.info("Posted %d %s movements for %s", len(movements), movement_type, reference)
    return movements
