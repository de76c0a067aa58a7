"""
Public catalog endpoints with Redis caching on listings.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from residency.db.session import get_db
from residency.schemas.catalog import AcademicTermResponse, BookingPackageResponse, RoomResponse
from residency.services import catalog_service
from residency.services.cache_service import get_cached_catalog, set_cached_catalog
from residency.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/catalog", tags=["Catalog"])


async def _cached_listing(kind: str, loader, schema, db: AsyncSession) -> list:
    cached = await get_cached_catalog(kind)
    if cached is not None:
        logger.info("catalog_cache_hit", kind=kind)
        return cached

    rows = await loader(db)
    data = [schema.model_validate(row).model_dump(mode="json") for row in rows]
    await set_cached_catalog(kind, data)
    return data


@router.get("/rooms", response_model=list[RoomResponse])
async def list_rooms(db: AsyncSession = Depends(get_db)):
    return await _cached_listing("rooms", catalog_service.list_rooms, RoomResponse, db)


@router.get("/terms", response_model=list[AcademicTermResponse])
async def list_terms(db: AsyncSession = Depends(get_db)):
    return await _cached_listing("terms", catalog_service.list_terms, AcademicTermResponse, db)


@router.get("/packages", response_model=list[BookingPackageResponse])
async def list_packages(db: AsyncSession = Depends(get_db)):
    return await _cached_listing(
        "packages", catalog_service.list_packages, BookingPackageResponse, db
    )
