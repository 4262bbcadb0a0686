"""
Crossover event routes
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.api.deps import found, parse_id
from comicsdb.core.database import get_db
from comicsdb.core.exceptions import InvalidIdentifierError
from comicsdb.schemas.catalog import EventDetail, EventPublisher, PublisherEvents
from comicsdb.services.catalog_service import catalog_service

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/publishers", response_model=List[EventPublisher])
async def list_event_publishers(db: AsyncSession = Depends(get_db)):
    return await catalog_service.list_event_publishers(db)


@router.get("/publishers/{publisher_id}", response_model=PublisherEvents)
async def list_publisher_events(publisher_id: str, db: AsyncSession = Depends(get_db)):
    pid = parse_id(publisher_id, "publisher")
    return found(await catalog_service.list_publisher_events(db, pid), "Publisher", pid)


@router.get("/{event_id}", response_model=EventDetail)
async def get_event(event_id: str, db: AsyncSession = Depends(get_db)):
    event_id = event_id.strip()
    if not event_id or len(event_id) > 50:
        raise InvalidIdentifierError("Invalid event id", value=event_id)
    return found(await catalog_service.get_event(db, event_id), "Event", event_id)
