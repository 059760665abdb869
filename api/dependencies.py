"""API Dependencies - unit of work and service factories"""
from fastapi import Depends

from application.catalog import CatalogService
from application.invoicing import InvoiceService
from application.pricing import RateResolver
from application.services import BookingLifecycle
from domain.repositories import UnitOfWork
from infrastructure.config import Settings, get_settings
from infrastructure.repositories.in_memory_repositories import InMemoryUnitOfWork

# Process-wide store; tests override get_uow with a fresh one
_uow = InMemoryUnitOfWork(timeout_seconds=get_settings().transaction_timeout_seconds)


def get_uow() -> UnitOfWork:
    return _uow


def get_catalog_service(
    uow: UnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings)
) -> CatalogService:
    return CatalogService(uow, settings)


def get_rate_resolver(uow: UnitOfWork = Depends(get_uow)) -> RateResolver:
    return RateResolver(uow)


def get_booking_service(
    uow: UnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings)
) -> BookingLifecycle:
    return BookingLifecycle(uow, settings)


def get_invoice_service(
    uow: UnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings)
) -> InvoiceService:
    return InvoiceService(uow, settings)
