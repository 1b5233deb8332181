"""Generic table operations behind ``/rest/{table}``.

Every call is made on behalf of an acting identity and passes through the
table's ``TablePolicy``. Rows leave this module as plain dicts so the HTTP
layer and the in-process gateway hand out the same shape.
"""

import enum
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConflictError, InvalidRequest, PolicyError
from .policies import TablePolicy, get_policy

logger = logging.getLogger(__name__)

MAX_LIMIT = 500
_TRUE = {"true", "1", "t", "yes"}
_FALSE = {"false", "0", "f", "no"}


def serialize_row(obj: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.key)
        if isinstance(value, enum.Enum):
            value = value.value
        row[column.key] = value
    return row


def coerce_value(column, value: Any) -> Any:
    """Convert query-string values to the column's Python type."""
    if not isinstance(value, str):
        return value
    if value.lower() == "null":
        return None
    col_type = column.property.columns[0].type
    try:
        if isinstance(col_type, Boolean):
            lowered = value.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(value)
        if isinstance(col_type, Integer):
            return int(value)
        if isinstance(col_type, Float):
            return float(value)
        if isinstance(col_type, DateTime):
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        if isinstance(col_type, Date):
            return date.fromisoformat(value[:10])
    except ValueError:
        raise InvalidRequest(
            f"Invalid value for '{column.key}'.",
            {column.key: "invalid"},
        )
    return value


def _apply_filters(query, policy: TablePolicy, filters: Optional[Mapping[str, Any]]):
    for name, value in (filters or {}).items():
        column = policy.column(name)
        value = coerce_value(column, value)
        query = query.filter(column.is_(None) if value is None else column == value)
    return query


def _order_columns(policy: TablePolicy, order: Optional[str], descending: bool):
    primary = policy.column(order or policy.default_order)
    keys = [primary.desc() if descending else primary.asc()]
    for pk in inspect(policy.model).primary_key:
        if pk.key != primary.key:
            col = getattr(policy.model, pk.key)
            keys.append(col.desc() if descending else col.asc())
    return keys


def _attach_embeds(
    db: Session,
    policy: TablePolicy,
    rows: List[Dict[str, Any]],
    embed: Iterable[str],
) -> List[Dict[str, Any]]:
    for name in embed:
        spec = policy.embeds.get(name)
        if spec is None:
            raise InvalidRequest(f"Unknown embed '{name}' on {policy.name}", {"embed": name})
        target = get_policy(spec.table)
        keys = {row[spec.column] for row in rows if row.get(spec.column) is not None}
        related: Dict[Any, Dict[str, Any]] = {}
        if keys:
            pk = inspect(target.model).primary_key[0]
            for obj in db.query(target.model).filter(pk.in_(keys)):
                data = serialize_row(obj)
                related[data[pk.key]] = {f: data.get(f) for f in spec.fields}
        for row in rows:
            row[name] = related.get(row.get(spec.column))
    return rows


def select_rows(
    db: Session,
    table: str,
    actor_id: str,
    filters: Optional[Mapping[str, Any]] = None,
    order: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
    embed: Sequence[str] = (),
) -> List[Dict[str, Any]]:
    policy = get_policy(table)
    query = policy.read_scope(db.query(policy.model), actor_id)
    query = _apply_filters(query, policy, filters)
    query = query.order_by(*_order_columns(policy, order, descending))
    if limit is not None:
        query = query.limit(max(1, min(int(limit), MAX_LIMIT)))
    rows = [serialize_row(obj) for obj in query.all()]
    return _attach_embeds(db, policy, rows, embed)


def count_rows(
    db: Session,
    table: str,
    actor_id: str,
    filters: Optional[Mapping[str, Any]] = None,
) -> int:
    policy = get_policy(table)
    query = policy.read_scope(db.query(policy.model), actor_id)
    return _apply_filters(query, policy, filters).count()


def _writable(policy: TablePolicy, values: Mapping[str, Any], allowed) -> Dict[str, Any]:
    unknown = sorted(set(values) - set(allowed))
    if unknown:
        raise PolicyError(
            f"Column(s) not writable on {policy.name}: {', '.join(unknown)}",
            {name: "not_writable" for name in unknown},
        )
    return {name: coerce_value(policy.column(name), value) for name, value in values.items()}


def insert_row(db: Session, table: str, actor_id: str, values: Mapping[str, Any]) -> Dict[str, Any]:
    policy = get_policy(table)
    if policy.check_insert is None:
        raise PolicyError(f"Rows cannot be inserted into {table}.")
    clean = policy.check_insert(db, _writable(policy, values, policy.insertable), actor_id)
    obj = policy.model(**clean)
    db.add(obj)
    try:
        db.flush()
        if policy.after_insert is not None:
            policy.after_insert(db, obj)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Insert into %s rejected by constraint: %s", table, exc.orig)
        raise ConflictError(f"Row conflicts with an existing {table} entry.")
    db.refresh(obj)
    return serialize_row(obj)


def update_rows(
    db: Session,
    table: str,
    actor_id: str,
    values: Mapping[str, Any],
    filters: Optional[Mapping[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Apply ``values`` to matching rows the actor may write.

    Rows outside the actor's scope are silently excluded; callers infer a
    permission failure from an empty result.
    """
    policy = get_policy(table)
    if policy.update_scope is None:
        raise PolicyError(f"Rows in {table} cannot be updated.")
    if not filters:
        raise InvalidRequest("Updates require at least one filter.", {"filters": "required"})
    clean = _writable(policy, values, policy.updatable)
    if not clean:
        raise InvalidRequest("Nothing to update.", {"values": "required"})
    query = policy.update_scope(db.query(policy.model), actor_id, clean)
    query = _apply_filters(query, policy, filters)
    objs = query.all()
    for obj in objs:
        for name, value in clean.items():
            setattr(obj, name, value)
        db.add(obj)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Update on %s rejected by constraint: %s", table, exc.orig)
        raise ConflictError(f"Update conflicts with an existing {table} entry.")
    for obj in objs:
        db.refresh(obj)
    return [serialize_row(obj) for obj in objs]


def delete_rows(
    db: Session,
    table: str,
    actor_id: str,
    filters: Optional[Mapping[str, Any]] = None,
) -> int:
    policy = get_policy(table)
    if policy.delete_scope is None:
        raise PolicyError(f"Rows in {table} cannot be deleted.")
    if not filters:
        raise InvalidRequest("Deletes require at least one filter.", {"filters": "required"})
    query = policy.delete_scope(db.query(policy.model), actor_id)
    query = _apply_filters(query, policy, filters)
    deleted = query.delete(synchronize_session=False)
    db.commit()
    return int(deleted)
