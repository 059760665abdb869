"""Invoicing - walk-in restaurant invoices and invoice queries"""
import logging
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from domain.entities import Invoice
from domain.enums import InvoiceLineSourceType, PromotionScope
from domain.errors import ValidationError, NotFoundError, InvalidStateTransitionError
from domain.repositories import UnitOfWork
from domain.value_objects import ChargeLine
from application.pricing import DiscountEngine
from application.transactions import transactional
from infrastructure.config import Settings, get_settings, local_clock

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for invoice use cases"""

    def __init__(
        self,
        uow: UnitOfWork,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.uow = uow
        self.settings = settings or get_settings()
        self.clock = clock or local_clock(self.settings.timezone)
        self.discounts = DiscountEngine(uow)

    async def create_walk_in_invoice(self, order_id: UUID, discount_code: Optional[str] = None) -> Invoice:
        """Invoice a walk-in order: one F&B line per item plus an optional food-scoped discount"""

        async def work() -> Invoice:
            order = await self.uow.orders.find_by_id(order_id)
            if not order:
                raise NotFoundError(f"Order {order_id} not found")
            if order.invoice_id:
                raise InvalidStateTransitionError(f"Order {order_id} is already invoiced")
            if not order.items:
                raise ValidationError("Order has no items")
            hotel = await self.uow.properties.find_by_id(order.property_id)
            if not hotel:
                raise NotFoundError(f"Property {order.property_id} not found")

            now = self.clock()
            lines = [
                ChargeLine(
                    source_type=InvoiceLineSourceType.FNB,
                    description=f"{item.name} x{item.quantity}",
                    amount=item.amount,
                    source_id=item.order_item_id
                )
                for item in order.items
            ]

            if discount_code:
                lines.append(await self.discounts.validate_and_apply(
                    order.property_id,
                    discount_code,
                    PromotionScope.FOOD,
                    DiscountEngine.discountable_subtotal(PromotionScope.FOOD, lines),
                    now
                ))

            invoice = Invoice.build(
                property_id=order.property_id,
                charges=lines,
                order_id=order.order_id,
                is_walk_in=True,
                notes=f"Walk-in order for {order.customer_name}",
                created_at=now,
                vat_rate=hotel.vat_rate
            )
            await self.uow.invoices.add(invoice)

            order.invoice_id = invoice.invoice_id
            await self.uow.orders.save(order)

            logger.info("Walk-in invoice %s issued, total %s", invoice.invoice_number, invoice.total_amount)
            return invoice

        return await transactional(
            self.uow, work,
            retries=self.settings.transaction_retries,
            backoff_seconds=self.settings.transaction_retry_backoff_seconds
        )

    async def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = await self.uow.invoices.find_by_id(invoice_id)
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    async def list_invoices_for_booking(self, booking_id: UUID) -> List[Invoice]:
        return await self.uow.invoices.find_by_booking(booking_id)
