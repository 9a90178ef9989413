# stocksync/sync/diff.py
# =======================================================
# Diff engine: local stock rows vs. remote catalog state
# - pure, no I/O
# - input order preserved, no dedup
# - only differing fields are reported
# =======================================================
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from stocksync.sync.types import (
    ChangeEntry,
    ChangeField,
    Classification,
    LocalStockRecord,
    NotFound,
    RemoteCatalogItem,
    ToUpdate,
    UpToDate,
)

_ZERO = Decimal("0")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Canonical numeric form; None for missing/unparseable values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    s = str(value).strip()
    if not s:
        return None
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


def format_decimal(value: Decimal) -> str:
    """'10.00' -> '10', '10.50' -> '10.5', never scientific notation."""
    d = value.normalize()
    if d == d.to_integral_value():
        d = d.quantize(Decimal(1))
    return format(d, "f")


def _as_text(value: Optional[Decimal]) -> Optional[str]:
    return format_decimal(value) if value is not None else None


def compare_price(item: RemoteCatalogItem, local: LocalStockRecord) -> Optional[ChangeEntry]:
    current = to_decimal(item.current_price)
    if current is not None and current == local.sale_price:
        return None
    return ChangeEntry(
        field=ChangeField.PRICE,
        old_value=_as_text(current),
        new_value=format_decimal(local.sale_price),
    )


def compare_regular_price(item: RemoteCatalogItem, local: LocalStockRecord) -> Optional[ChangeEntry]:
    current = to_decimal(item.current_compare_at_or_regular_price)
    if (current if current is not None else _ZERO) == local.regular_price:
        return None
    # 0 locally means "clear the compare-at / regular price"
    new_value = None if local.regular_price == _ZERO else format_decimal(local.regular_price)
    return ChangeEntry(
        field=ChangeField.REGULAR_PRICE,
        old_value=_as_text(current),
        new_value=new_value,
    )


def compare_stock(item: RemoteCatalogItem, local: LocalStockRecord) -> Optional[ChangeEntry]:
    if item.current_stock is not None and item.current_stock == local.stock:
        return None
    return ChangeEntry(field=ChangeField.STOCK, old_value=item.current_stock, new_value=local.stock)


_COMPARATORS = (compare_price, compare_regular_price, compare_stock)


def diff_item(item: RemoteCatalogItem, local: LocalStockRecord) -> List[ChangeEntry]:
    changes = []
    for compare in _COMPARATORS:
        entry = compare(item, local)
        if entry is not None:
            changes.append(entry)
    return changes


def classify(
    local: Iterable[LocalStockRecord],
    remote_by_sku: Mapping[str, RemoteCatalogItem],
) -> Classification:
    """
    Sort every local row into exactly one of to_update / up_to_date / not_found.
    """
    result = Classification()
    for record in local:
        remote = remote_by_sku.get(record.sku)
        if remote is None:
            entry = NotFound(sku=record.sku)
            result.not_found.append(entry)
        else:
            changes = diff_item(remote, record)
            if changes:
                entry = ToUpdate(sku=record.sku, display_name=remote.display_name, changes=changes)
                result.to_update.append(entry)
            else:
                entry = UpToDate(sku=record.sku, display_name=remote.display_name)
                result.up_to_date.append(entry)
        result.items.append(entry)
    return result


def index_by_sku(items: Iterable[RemoteCatalogItem]) -> Dict[str, RemoteCatalogItem]:
    """Last write wins on duplicate SKUs."""
    return {it.sku: it for it in items if it.sku}
