"""Booking API routes."""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from copilot.database import get_db
from copilot.errors import CopilotError, error_to_http
from . import service
from .schemas import CreateBookingRequest, CreateBookingResponse, SlotsResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/slots", response_model=SlotsResponse)
async def get_slots(
    booking_type_id: str = Query(..., description="Booking type ID"),
    day: date = Query(..., alias="date", description="Requested date (YYYY-MM-DD)"),
    timezone: Optional[str] = Query(None, description="Requester timezone (IANA name)"),
    db: AsyncSession = Depends(get_db),
):
    """
    Get bookable slots for a booking type on a given day.

    Returns `slots` (available only) and `all_slots` (every candidate,
    with blocked ones marked `available: false`).
    """
    try:
        return await service.get_slots_for_date(db, booking_type_id, day, timezone)
    except CopilotError as e:
        raise error_to_http(e)
    except Exception as e:
        logger.exception(f"Booking slots error for {booking_type_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error computing slots: {str(e)}")


@router.post("/bookings", response_model=CreateBookingResponse, status_code=201)
async def create_booking(
    payload: CreateBookingRequest,
    db: AsyncSession = Depends(get_db),
):
    """Reserve a slot. Returns 409 when the slot is taken or in the past."""
    try:
        return await service.create_booking(db, payload)
    except CopilotError as e:
        raise error_to_http(e)
    except Exception as e:
        logger.exception(f"Booking create error for {payload.booking_type_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating booking: {str(e)}")
