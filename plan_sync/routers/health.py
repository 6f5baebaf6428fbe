"""Router exposing basic system endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter


logger = logging.getLogger(__name__)


router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Simple health probe for liveness checks."""
    return {"status": "ok"}
