import asyncio
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..schemas.machine import CatalogSearch, Machine, MachineDetailView
from ..services.query_cache import QueryCache
from .dependencies import get_query_cache

router = APIRouter(tags=["catalog"])


def build_machine_detail(machine: Machine) -> MachineDetailView:
    active, total = machine.instance_counts()
    return MachineDetailView(
        machine=machine,
        gallery=machine.specs.gallery_images(),
        cover_image=machine.specs.cover_image(),
        highlights=machine.specs.highlights or [],
        location=machine.specs.location,
        availability_ratio=active / total if total else 0.0,
    )


async def search_machines(cache: QueryCache, search: CatalogSearch) -> List[Machine]:
    rows = await cache.fetch("client.machines.search", search.to_rpc())
    return [Machine.model_validate(row) for row in rows or []]


@router.get("")
async def read_catalog(
    q: Optional[str] = Query(None, max_length=200),
    min_price: Optional[int] = Query(None, ge=0),
    max_price: Optional[int] = Query(None, ge=0),
    sort_by: Literal["price", "name", "availability"] = "name",
    sort_order: Literal["asc", "desc"] = "asc",
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    cache: QueryCache = Depends(get_query_cache),
):
    """Featured machines plus one page of search results."""
    search = CatalogSearch(
        query=q or None,
        min_price=min_price,
        max_price=max_price,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    featured, results = await asyncio.gather(
        cache.fetch("client.machines.featured"),
        search_machines(cache, search),
    )
    featured_machines = [Machine.model_validate(row) for row in featured or []]
    return {
        "featured": [build_machine_detail(m).model_dump(mode="json") for m in featured_machines],
        "results": [build_machine_detail(m).model_dump(mode="json") for m in results],
        "query": search.model_dump(mode="json"),
    }


@router.get("/{machine_id}")
async def read_catalog_machine(machine_id: str, cache: QueryCache = Depends(get_query_cache)):
    data = await cache.fetch("client.machines.getDetails", {"id": machine_id})
    return build_machine_detail(Machine.model_validate(data)).model_dump(mode="json")
