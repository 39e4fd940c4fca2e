"""
Listing Service

Builds the data for a listing page (/place[/date][/category]): canonical
filters, the concrete date range and the first page of matching events.

Design Decisions:
- A request that is not canonical yields a redirect instead of a page
- Unknown places fall back to the default place, keeping the filters
- The events fetch degrades to an empty page; catalogs degrade to
  format-only validation
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from agenda.core.dates import date_range_for, date_range_for_day
from agenda.core.exceptions import AgendaError, NotFoundError
from agenda.core.setting import settings
from agenda.core.validators import is_valid_place
from agenda.services.backend_client import BackendClient
from agenda.services.catalog_service import CatalogService
from agenda.services.filter_parser import (
    DEFAULT_DISTANCE_KM,
    ParsedFilters,
    QueryInput,
    build_canonical_url,
    build_fallback_url_for_invalid_place,
    get_redirect_url,
    parse_filters,
)
from agenda.services.redirect_service import NON_PLACE_SEGMENTS
from agenda.services.url_segments import extract_segments

logger = logging.getLogger(__name__)

LISTING_PAGE_SIZE = 10


def empty_events_page(page_size: int = LISTING_PAGE_SIZE) -> dict[str, Any]:
    """Fallback payload used whenever the events backend is unavailable."""
    return {
        "content": [],
        "currentPage": 0,
        "pageSize": page_size,
        "totalElements": 0,
        "totalPages": 0,
        "last": True,
    }


@dataclass
class ListingResult:
    filters: Optional[ParsedFilters] = None
    payload: Optional[dict[str, Any]] = None
    redirect_to: Optional[str] = None
    permanent: bool = True


def events_query(filters: ParsedFilters, page: int = 0, size: int = LISTING_PAGE_SIZE) -> dict[str, Any]:
    """Backend /events parameters for a filter state."""
    params: dict[str, Any] = {
        "page": page,
        "size": size,
        "place": filters.place,
        "category": filters.category,
        "term": filters.search_term,
    }
    if filters.specific_date:
        day = date_range_for_day(filters.specific_date)
        params["from"] = day.start.date().isoformat()
        params["to"] = day.start.date().isoformat()
    elif filters.by_date is not None:
        params["byDate"] = filters.by_date.value
        date_range = date_range_for(filters.by_date)
        if date_range is not None:
            params["from"] = date_range.start.date().isoformat()
            params["to"] = date_range.end.date().isoformat()
    if filters.lat is not None and filters.lon is not None:
        params["lat"] = filters.lat
        params["lon"] = filters.lon
        params["radius"] = filters.distance or DEFAULT_DISTANCE_KM
    return params


class ListingService:
    def __init__(self, backend: BackendClient, catalog: CatalogService):
        self.backend = backend
        self.catalog = catalog

    async def known_places(self) -> Optional[set[str]]:
        """Slugs of regions and cities, None when the catalog is unavailable."""
        try:
            regions = await self.catalog.get_regions()
            cities = await self.catalog.get_cities()
        except AgendaError as e:
            logger.warning(f"Place catalog unavailable: {e}")
            return None
        places = {settings.DEFAULT_PLACE}
        for item in list(regions or []) + list(cities or []):
            if isinstance(item, dict) and isinstance(item.get("slug"), str):
                places.add(item["slug"])
        return places

    async def build(self, path: str, query: QueryInput) -> ListingResult:
        """
        Resolve a listing request into a page payload or a redirect.

        Raises:
            NotFoundError: the path cannot be a listing
        """
        segments = extract_segments(path)
        if segments is None:
            raise NotFoundError("Page")
        if segments.place is not None and (
            segments.place in NON_PLACE_SEGMENTS or not is_valid_place(segments.place)
        ):
            raise NotFoundError("Page")

        categories = await self.catalog.get_category_summaries()
        filters = parse_filters(segments, query, categories)

        redirect_to = get_redirect_url(filters)
        if redirect_to is not None:
            return ListingResult(filters=filters, redirect_to=redirect_to)

        places = await self.known_places()
        if places is not None and filters.place not in places:
            logger.info(f"Unknown place '{filters.place}', falling back to {settings.DEFAULT_PLACE}")
            fallback = build_fallback_url_for_invalid_place(
                filters.by_date.value if filters.by_date else None,
                filters.category,
                query,
            )
            return ListingResult(filters=filters, redirect_to=fallback, permanent=False)

        try:
            events = await self.backend.fetch_events(events_query(filters))
        except AgendaError as e:
            logger.warning(f"Events unavailable for {path}: {e}")
            events = empty_events_page()

        date_range = None
        if filters.specific_date:
            date_range = date_range_for_day(filters.specific_date)
        elif filters.by_date is not None:
            date_range = date_range_for(filters.by_date)

        payload = {
            "filters": filters.model_dump(mode="json", exclude={"is_canonical"}),
            "canonicalUrl": build_canonical_url(filters),
            "dateRange": (
                {"start": date_range.start.isoformat(), "end": date_range.end.isoformat()}
                if date_range else None
            ),
            "events": events,
        }
        return ListingResult(filters=filters, payload=payload)
