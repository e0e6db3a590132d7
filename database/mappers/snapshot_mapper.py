# -*- coding: utf-8 -*-
"""
Snapshot Mapper - TRAINREG

Turns ORM rows into JSON-safe dicts for the yearly archive and back.

  - every table column is kept, nothing else (no relationships)
  - Date / DateTime columns travel as ISO strings and are parsed back with
    the column's own type, so a restored row compares equal to the original
  - Enum columns travel as their value
"""
from __future__ import annotations

import enum
import logging
from datetime import date, datetime
from typing import Any, Dict, Type

from sqlalchemy import Date, DateTime

logger = logging.getLogger(__name__)


def to_snapshot(obj: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.key)
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif isinstance(value, enum.Enum):
            value = value.value
        data[column.key] = value
    return data


def from_snapshot(model: Type[Any], data: Dict[str, Any]) -> Any:
    """New, transient instance of model built from a to_snapshot() dict."""
    kwargs: Dict[str, Any] = {}
    for column in model.__table__.columns:
        if column.key not in data:
            continue
        value = data[column.key]
        if value is not None:
            if isinstance(column.type, DateTime):
                value = datetime.fromisoformat(value)
            elif isinstance(column.type, Date):
                value = date.fromisoformat(value)
        kwargs[column.key] = value

    unknown = set(data) - set(kwargs)
    if unknown:
        logger.warning(f"Snapshot for {model.__name__} has unknown keys: {sorted(unknown)}")
    return model(**kwargs)
