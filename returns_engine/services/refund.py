"""
Refund computation for blended cash and loyalty-point payments.

All arithmetic is done in ``Decimal``. Currency amounts are rounded to
cents and point counts to whole points, both half-to-even. The result is a
snapshot: the point-to-cash rate passed in is frozen into it.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Dict, Iterable, Optional

from returns_engine.models.order import Order, PaymentMethod
from returns_engine.models.return_model import ExpectedRefund, ReturnItem

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def round_currency(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_EVEN)


def round_points(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_EVEN))


def returned_quantities(returned_items: Iterable[ReturnItem]) -> Dict[str, int]:
    quantities: Dict[str, int] = {}
    for item in returned_items:
        quantities[item.order_item_id] = quantities.get(item.order_item_id, 0) + item.return_quantity
    return quantities


def is_full_return(order: Order, quantities: Dict[str, int]) -> bool:
    return all(quantities.get(item.id, 0) >= item.quantity for item in order.items)


def describe_refund(refund: ExpectedRefund) -> str:
    parts = []
    if refund.monetary_refund > 0:
        parts.append(f"${refund.monetary_refund:.2f} to the original payment method")
    if refund.points_refund > 0:
        parts.append(f"{refund.points_refund} points (worth ${refund.points_refund_value:.2f})")
    if not parts:
        return "No refundable amount for the selected items"

    scope = "Full refund" if refund.is_full_return else "Partial refund"
    text = f"{scope}: " + " and ".join(parts)
    if refund.shipping_refund > 0:
        text += f", including ${refund.shipping_refund:.2f} shipping"
    return text + f". Total value ${refund.total_refund_value:.2f}"


def compute_refund(
    order: Order,
    returned_items: Iterable[ReturnItem],
    point_value: float,
    now: Optional[datetime] = None,
    refund_shipping_on_full_return: bool = False,
) -> ExpectedRefund:
    """
    Project the refund for a set of returned items.

    The returned items' share of the items subtotal is applied to what the
    customer actually paid for the items (total minus shipping), then split
    between cash and points in the same proportion as the original payment.
    Points are valued at ``point_value``, the rate current at computation
    time.
    """
    quantities = returned_quantities(returned_items)
    full_return = is_full_return(order, quantities)

    items_subtotal = sum((to_decimal(item.subtotal) for item in order.items), ZERO)
    returned_value = ZERO
    for item in order.items:
        qty = quantities.get(item.id, 0)
        if qty:
            returned_value += to_decimal(item.subtotal) * qty / item.quantity

    order_total = to_decimal(order.total)
    shipping = to_decimal(order.shipping)
    paid_for_items = max(order_total - shipping, ZERO)

    items_refund = ZERO
    if items_subtotal > 0:
        items_refund = paid_for_items * returned_value / items_subtotal
    shipping_refund = shipping if full_return and refund_shipping_on_full_return else ZERO
    refund_base = items_refund + shipping_refund

    monetary = ZERO
    points = 0
    if order_total > 0:
        cash_paid = max(order_total - to_decimal(order.points_value), ZERO)
        monetary = refund_base * cash_paid / order_total
        points = round_points(Decimal(order.points_used) * refund_base / order_total)

    rate = to_decimal(point_value)
    monetary = round_currency(monetary)
    points_value = round_currency(Decimal(points) * rate)

    refund = ExpectedRefund(
        payment_method=payment_method_of(order).value,
        items_refund=float(round_currency(items_refund)),
        shipping_refund=float(round_currency(shipping_refund)),
        monetary_refund=float(monetary),
        points_refund=points,
        points_refund_value=float(points_value),
        point_value=float(rate),
        total_refund_value=float(round_currency(monetary + points_value)),
        is_full_return=full_return,
        computed_at=now or datetime.utcnow(),
    )
    refund.refund_description = describe_refund(refund)
    return refund


def payment_method_of(order: Order) -> PaymentMethod:
    if order.points_used <= 0:
        return PaymentMethod.CARD
    if to_decimal(order.points_value) >= to_decimal(order.total):
        return PaymentMethod.POINTS
    return PaymentMethod.HYBRID
