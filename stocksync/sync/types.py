# stocksync/sync/types.py
# Data model shared by the diff engine, preview builder, applier and audit recorder.
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, List, Literal, Optional, Union, Annotated

from pydantic import BaseModel, Field, AliasChoices, field_validator


class ChangeField(str, Enum):
    PRICE = "price"
    REGULAR_PRICE = "regular_price"
    STOCK = "stock"


class DetailStatus(str, Enum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"
    UP_TO_DATE = "up_to_date"
    ERROR = "error"


class LocalStockRecord(BaseModel):
    """One row of the prepared dataset. Accepts the upload column names too."""
    sku: str = Field(validation_alias=AliasChoices("sku", "SKU"))
    stock: int = Field(ge=0, validation_alias=AliasChoices("stock", "STOCK"))
    regular_price: Decimal = Field(ge=0, validation_alias=AliasChoices("regular_price", "REGULAR PRICE"))
    sale_price: Decimal = Field(ge=0, validation_alias=AliasChoices("sale_price", "SALE PRICE"))

    class Config:
        frozen = True

    @field_validator("sku", mode="before")
    @classmethod
    def _sku_as_text(cls, v: Any) -> str:
        # spreadsheets hand numeric SKUs over as numbers
        return str(v).strip() if v is not None else v


class RemoteCatalogItem(BaseModel):
    """Platform-neutral projection of one remote product or variant."""
    sku: str
    remote_id: Union[int, str]
    display_name: str = ""
    current_price: Optional[Decimal] = None
    current_compare_at_or_regular_price: Optional[Decimal] = None
    current_stock: Optional[int] = None
    platform_specific: dict = Field(default_factory=dict)


class ChangeEntry(BaseModel):
    field: ChangeField
    old_value: Union[int, str, None] = None
    new_value: Union[int, str, None] = None


class ToUpdate(BaseModel):
    outcome: Literal["to_update"] = "to_update"
    sku: str
    display_name: str
    changes: List[ChangeEntry] = Field(min_length=1)


class UpToDate(BaseModel):
    outcome: Literal["up_to_date"] = "up_to_date"
    sku: str
    display_name: str


class NotFound(BaseModel):
    outcome: Literal["not_found"] = "not_found"
    sku: str


ClassifiedItem = Annotated[Union[ToUpdate, UpToDate, NotFound], Field(discriminator="outcome")]


class Classification(BaseModel):
    to_update: List[ToUpdate] = Field(default_factory=list)
    up_to_date: List[UpToDate] = Field(default_factory=list)
    not_found: List[NotFound] = Field(default_factory=list)
    # every classified item in input order
    items: List[ClassifiedItem] = Field(default_factory=list)


class RemoteUpdateCommand(BaseModel):
    sku: str
    remote_id: Union[int, str]
    platform_specific: dict = Field(default_factory=dict)
    new_price: str
    new_regular_price: Optional[str] = None
    new_stock: int


class AuditDetailDraft(BaseModel):
    sku: str
    product_name: str
    status: DetailStatus
    changes_json: str = "{}"


class SyncPreview(BaseModel):
    to_update: List[ToUpdate] = Field(default_factory=list)
    up_to_date: List[UpToDate] = Field(default_factory=list)
    not_found: List[NotFound] = Field(default_factory=list)
    update_payload: List[RemoteUpdateCommand] = Field(default_factory=list)
    audit_details: List[AuditDetailDraft] = Field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.to_update) + len(self.up_to_date) + len(self.not_found)


class BatchFailure(BaseModel):
    id: Union[int, str]
    message: str


class BatchUpdateResult(BaseModel):
    succeeded_ids: List[Union[int, str]] = Field(default_factory=list)
    failures: List[BatchFailure] = Field(default_factory=list)


class SyncOutcome(BaseModel):
    updated_count: int = 0
    not_found_count: int = 0
    up_to_date_count: int = 0
    error_count: int = 0
    error_samples: List[str] = Field(default_factory=list)


class SyncHistorySummaryDraft(BaseModel):
    total_processed: int = 0
    total_updated: int = 0
    total_not_found: int = 0
    total_up_to_date: int = 0
    total_errors: int = 0

    def zeroed(self) -> "SyncHistorySummaryDraft":
        """Same shape, numeric totals cleared (continuation chunks)."""
        return SyncHistorySummaryDraft()
