"""Shared dependencies for API routes."""

from typing import Dict, Optional
from fastapi import HTTPException

from core.errors import ErrorKind
from core.result import OperationResult
from database import DealDatabase
from deals import DealService

# Global service instances
_service: Optional[DealService] = None
_database: Optional[DealDatabase] = None

ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.WALLET_NOT_CONNECTED: 401,
    ErrorKind.WALLET_INCAPABLE: 400,
    ErrorKind.INSUFFICIENT_BALANCE: 402,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.INVALID_RECIPIENT: 400,
    ErrorKind.SIGNING_REJECTED: 403,
    ErrorKind.SUBMISSION_FAILED: 502,
    ErrorKind.CONFIRMATION_TIMEOUT: 504,
    ErrorKind.PARTIALLY_MINTED: 409,
    ErrorKind.INVALID_TICKET_FORMAT: 400,
    ErrorKind.TICKET_EXPIRED: 410,
}


def set_service(service: Optional[DealService]) -> None:
    """Set the global service instance."""
    global _service
    _service = service


def get_service() -> DealService:
    """Get the service instance dependency."""
    if not _service:
        raise HTTPException(status_code=503, detail="Deal service not initialized")
    return _service


def set_database(database: Optional[DealDatabase]) -> None:
    """Set the global database instance."""
    global _database
    _database = database


def get_database() -> DealDatabase:
    """Get the database instance dependency."""
    if not _database:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return _database


def raise_for_result(result: OperationResult) -> None:
    """Turn a failed OperationResult into an HTTP error."""
    if result.success:
        return
    status_code = ERROR_STATUS.get(result.error_kind, 500)
    raise HTTPException(
        status_code=status_code,
        detail={"error": result.error_kind.value, "message": result.message},
    )
