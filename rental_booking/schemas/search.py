from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field


class Guests(BaseModel):
    adults: int = Field(0, ge=0, description="Number of adults")
    children: list[int] = Field(default_factory=list, description="Ages of children")

    @property
    def total(self) -> int:
        return self.adults + len(self.children)


class PriceRange(BaseModel):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)


class Sorting(BaseModel):
    # Validated by the search service so an unknown field is a domain error
    sorting_by: str = Field("created_at", description="name, created_at, default_price or price")
    desc: bool = True


class SearchFilters(BaseModel):
    listing_name: Optional[str] = Field(None, description="Case-insensitive substring of the name")
    amenities: list[str] = Field(
        default_factory=list, description="Amenities that must all be present"
    )
    price_per_night: Optional[PriceRange] = None
    free_cancellation: bool = False
    sorting: Optional[Sorting] = None


class SearchParams(BaseModel):
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    guests: Optional[Guests] = None
    region_id: Optional[int] = None
    slug: Optional[str] = None


class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class SearchRequest(BaseModel):
    """
    Multi-listing search request.

    Example:
        {
            "filters": {"amenities": ["wifi"], "price_per_night": {"max": 200}},
            "params": {"check_in": "2024-12-01", "check_out": "2024-12-05",
                       "guests": {"adults": 2, "children": [7]}},
            "pagination": {"page": 1, "limit": 10}
        }
    """

    filters: SearchFilters = Field(default_factory=SearchFilters)
    params: SearchParams = Field(default_factory=SearchParams)
    pagination: Pagination = Field(default_factory=Pagination)
    use_cache: bool = True


class PaginationInfo(BaseModel):
    limit: int
    current_page: int
    next_page: Optional[int] = None
    previous_page: Optional[int] = None
    total_records: int
    total_pages: int


class SearchResponse(BaseModel):
    data: list[dict[str, Any]]
    pagination: PaginationInfo
