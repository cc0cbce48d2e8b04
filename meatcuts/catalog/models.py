from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..db.models import MeatCut


class CamelModel(BaseModel):
    """JSON bodies use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PriceRangeOut(CamelModel):
    min: float
    max: float
    mean: float
    display: str


class MeatCutOut(CamelModel):
    id: int
    name: str
    chinese_name: str
    part: str
    lean: bool
    price_range: PriceRangeOut
    texture_notes: str | None = None
    image_reference: str
    image_asset_id: str | None = None
    image_url: str | None = None
    slug: str
    cooking_methods: list[str] = Field(default_factory=list)
    recommended_dishes: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_item(cls, item: MeatCut) -> MeatCutOut:
        return cls(
            id=item.id,
            name=item.name,
            chinese_name=item.chinese_name,
            part=item.part,
            lean=bool(item.lean),
            price_range=PriceRangeOut(
                min=item.price_min,
                max=item.price_max,
                mean=item.price_mean,
                display=item.price_display,
            ),
            texture_notes=item.texture_notes,
            image_reference=item.image_reference,
            image_asset_id=item.image_asset_id,
            image_url=item.image_url or None,
            slug=item.slug,
            cooking_methods=sorted(m.name for m in item.cooking_methods),
            recommended_dishes=sorted(d.name for d in item.recommended_dishes),
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class MeatCutDetail(MeatCutOut):
    share_url: str | None = None


class MeatCutIn(CamelModel):
    name: str = Field(..., min_length=1)
    chinese_name: str = Field(..., min_length=1)
    part: str = Field(default="Other", min_length=1)
    lean: bool = False
    price_min: float | None = Field(default=None, ge=0)
    price_max: float | None = Field(default=None, ge=0)
    price_display: str | None = Field(
        default=None, description='Human price string, e.g. "$6 – $9"'
    )
    texture_notes: str | None = None
    image_reference: str = Field(..., min_length=1)
    image_asset_id: str | None = None
    cooking_methods: list[str] = Field(default_factory=list)
    recommended_dishes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _price_source(self) -> MeatCutIn:
        if self.price_display is None and (self.price_min is None or self.price_max is None):
            raise ValueError("Provide priceMin and priceMax, or priceDisplay")
        return self


class MeatCutUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    chinese_name: str | None = Field(default=None, min_length=1)
    part: str | None = Field(default=None, min_length=1)
    lean: bool | None = None
    price_min: float | None = Field(default=None, ge=0)
    price_max: float | None = Field(default=None, ge=0)
    price_display: str | None = None
    texture_notes: str | None = None
    image_reference: str | None = Field(default=None, min_length=1)
    image_asset_id: str | None = None
    cooking_methods: list[str] | None = None
    recommended_dishes: list[str] | None = None


class MeatCutPage(CamelModel):
    meat_cuts: list[MeatCutOut]
    total: int
    page: int
    limit: int


class BulkDeleteRequest(CamelModel):
    ids: list[int] = Field(..., min_length=1)


class BatchError(CamelModel):
    row: int | None = None
    id: int | str | None = None
    error: str


class BatchSummary(CamelModel):
    succeeded: int = 0
    failed: int = 0
    errors: list[BatchError] = Field(default_factory=list)
    cancelled: bool = False

    def fail(self, error: str, *, row: int | None = None, id: int | str | None = None) -> None:
        self.failed += 1
        self.errors.append(BatchError(row=row, id=id, error=error))


class DeleteSummary(BatchSummary):
    deleted_ids: list[int] = Field(default_factory=list)


class TagsOut(CamelModel):
    parts: list[str]
    cooking_methods: list[str]
    recommended_dishes: list[str]


class CatalogMetadata(CamelModel):
    last_update: str | None
    last_csv_export: str | None
    total_meat_cuts: int
    version: str
