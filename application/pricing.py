"""Pricing Services - nightly rates, surcharges and discount codes"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List
from uuid import UUID

from domain.entities import RoomType, SurchargeRule
from domain.enums import SurchargeType, PromotionScope, InvoiceLineSourceType, SCOPE_SOURCE_TYPES
from domain.errors import (
    NotFoundError, RuleNotFoundError, InvalidCodeError, ExpiredError, ScopeMismatchError,
)
from domain.repositories import UnitOfWork
from domain.value_objects import DateRange, NightlyRate, PriceQuote, ChargeLine, SurchargeContext, to_money

logger = logging.getLogger(__name__)


def day_of_week_index(night: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (night.weekday() + 1) % 7


class RateResolver:
    """Resolves the nightly price of a room type.

    Precedence, highest first: an active date-range override containing the
    night, the weekday price, the base price. When several overrides contain
    the same night the most recently created one wins and the others are
    reported on the result.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def resolve(self, property_id: UUID, room_type_id: UUID, night: date) -> NightlyRate:
        room_type = await self._get_room_type(property_id, room_type_id)
        return self.resolve_from_rules(room_type, night)

    async def resolve_nightly_rate(self, property_id: UUID, room_type_id: UUID, night: date) -> Decimal:
        rate = await self.resolve(property_id, room_type_id, night)
        return rate.price

    async def quote(self, property_id: UUID, room_type_id: UUID, check_in: date, check_out: date) -> PriceQuote:
        """Per-night breakdown and total for one room over [check_in, check_out)"""
        stay = DateRange.between(check_in, check_out)
        room_type = await self._get_room_type(property_id, room_type_id)
        return self.quote_from_rules(room_type, stay)

    def quote_from_rules(self, room_type: RoomType, stay: DateRange) -> PriceQuote:
        items = [self.resolve_from_rules(room_type, night) for night in stay.dates()]
        warnings = [
            f"{len(item.conflicting_rule_ids) + 1} date range prices overlap on {item.night.isoformat()}; "
            f"using the most recent ({item.rule_id})"
            for item in items if item.is_ambiguous
        ]
        return PriceQuote(
            room_type_id=room_type.room_type_id,
            items=items,
            total=to_money(sum((item.price for item in items), Decimal("0"))),
            warnings=warnings
        )

    def resolve_from_rules(self, room_type: RoomType, night: date) -> NightlyRate:
        """Resolve against an already loaded rule set. Pure."""
        overrides = room_type.date_range_prices_for(night)
        if overrides:
            winner = overrides[0]
            conflicting = [rule.rule_id for rule in overrides[1:]]
            if conflicting:
                logger.warning(
                    "Ambiguous date range prices for room type %s on %s: %d rules overlap, using %s",
                    room_type.room_type_id, night, len(overrides), winner.rule_id
                )
            return NightlyRate(
                night=night,
                price=winner.price,
                source="DATE_RANGE",
                rule_id=winner.rule_id,
                conflicting_rule_ids=conflicting
            )

        weekday_price = room_type.day_of_week_prices.get(day_of_week_index(night))
        if weekday_price is not None:
            return NightlyRate(night=night, price=weekday_price, source="DAY_OF_WEEK")

        if room_type.base_price_from is None:
            raise RuleNotFoundError(f"Room type {room_type.name} has no base price")
        return NightlyRate(night=night, price=room_type.base_price_from, source="BASE")

    async def _get_room_type(self, property_id: UUID, room_type_id: UUID) -> RoomType:
        room_type = await self.uow.room_types.find_by_id(room_type_id)
        if not room_type or room_type.property_id != property_id:
            raise NotFoundError(f"Room type {room_type_id} not found for property {property_id}")
        return room_type


class SurchargeEngine:
    """Early check-in, late checkout and extra guest surcharges"""

    DESCRIPTIONS = {
        SurchargeType.EARLY_CHECK_IN: "Early check-in surcharge",
        SurchargeType.LATE_CHECK_OUT: "Late check-out surcharge",
        SurchargeType.EXTRA_GUEST: "Extra guest surcharge",
    }

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def apply_surcharges(self, property_id: UUID, context: SurchargeContext) -> List[ChargeLine]:
        rules = await self.uow.surcharge_rules.find_active_by_property(property_id)
        return self.surcharges_from_rules(rules, context)

    def surcharges_from_rules(self, rules: Iterable[SurchargeRule], context: SurchargeContext) -> List[ChargeLine]:
        lines = []
        for rule in rules:
            if not rule.is_active:
                continue

            if rule.surcharge_type == SurchargeType.EARLY_CHECK_IN and context.is_early_check_in:
                amount = rule.calculate(context.subtotal)
                description = self.DESCRIPTIONS[rule.surcharge_type]
            elif rule.surcharge_type == SurchargeType.LATE_CHECK_OUT and context.is_late_check_out:
                amount = rule.calculate(context.subtotal)
                description = self.DESCRIPTIONS[rule.surcharge_type]
            elif rule.surcharge_type == SurchargeType.EXTRA_GUEST and context.extra_guest_count > 0:
                # applied once per extra guest
                amount = to_money(rule.calculate(context.subtotal) * context.extra_guest_count)
                description = f"{self.DESCRIPTIONS[rule.surcharge_type]} x{context.extra_guest_count}"
            else:
                continue

            lines.append(ChargeLine(
                source_type=InvoiceLineSourceType.SURCHARGE,
                description=description,
                amount=amount,
                source_id=rule.rule_id
            ))
        return lines


class DiscountEngine:
    """Validates promotion codes and prices the discount"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def validate_and_apply(
        self,
        property_id: UUID,
        code: str,
        scope: PromotionScope,
        subtotal: Decimal,
        as_of: datetime
    ) -> ChargeLine:
        """Negative discount line for a subtotal of lines in ``scope``"""
        if not code or not code.strip():
            raise InvalidCodeError("Discount code is required")

        promotion = await self.uow.promotions.find_by_code(property_id, code)
        if not promotion:
            raise InvalidCodeError(f"Discount code {code} does not exist")

        if not promotion.is_valid_at(as_of):
            raise ExpiredError(f"Discount code {promotion.code} is not valid at {as_of.isoformat()}")

        if promotion.scope != scope:
            raise ScopeMismatchError(
                f"Discount code {promotion.code} applies to {promotion.scope.value}, not {scope.value}"
            )

        amount = min(to_money(subtotal * promotion.value / 100), to_money(subtotal))
        return ChargeLine(
            source_type=InvoiceLineSourceType.DISCOUNT,
            description=f"Discount {promotion.code} ({promotion.value.normalize():f}%)",
            amount=-amount,
            source_id=promotion.promotion_id
        )

    @staticmethod
    def discountable_subtotal(scope: PromotionScope, lines: Iterable[ChargeLine]) -> Decimal:
        """Sum of the lines a promotion of ``scope`` may discount"""
        allowed = SCOPE_SOURCE_TYPES[scope]
        return to_money(sum((l.amount for l in lines if l.source_type in allowed), Decimal("0")))
