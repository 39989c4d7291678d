from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from order_engine.application.service import OrderService
from order_engine.core_settings import Settings
from order_engine.infrastructure.catalog import CatalogRepository
from order_engine.infrastructure.db import get_database, get_db
from .auth import app_settings


def get_order_service(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(app_settings),
) -> OrderService:
    catalog = CatalogRepository(get_database(request).session_factory)
    return OrderService(db, catalog, settings)


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
