from __future__ import annotations

from pydantic import Field, model_validator

from ..catalog.models import CamelModel, MeatCutOut


class SearchFilters(CamelModel):
    q: str | None = Field(default=None, description="Substring of name, Chinese name or part")
    price_min: float | None = Field(default=None, ge=0)
    price_max: float | None = Field(default=None, ge=0)
    part: str | None = None
    lean: bool | None = None
    cooking_method: str | None = None
    limit: int | None = Field(default=None, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _price_bounds(self) -> SearchFilters:
        if self.price_min is not None and self.price_max is not None and self.price_min > self.price_max:
            raise ValueError("priceMin must not exceed priceMax")
        return self


class GlobalPriceRange(CamelModel):
    min: float = 0
    max: float = 0


class SearchResponse(CamelModel):
    results: list[MeatCutOut]
    total: int
    price_range: GlobalPriceRange


class FacetsResponse(CamelModel):
    parts: list[str]
    cooking_methods: list[str]
    price_range: GlobalPriceRange
