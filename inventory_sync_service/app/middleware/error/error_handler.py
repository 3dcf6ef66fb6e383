"""
Error handling for the Inventory Sync Service.
Maps the service's exception taxonomy and request errors onto one JSON
error envelope.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.errors import InventorySyncError
from ...utils.logging import setup_inventory_logging

logger = setup_inventory_logging("inventory_sync_service.error_handler")


class InventorySyncErrorHandler:
    """
    Centralized error handling for the Inventory Sync Service.

    ``InventorySyncError`` subclasses carry their own status code and error
    type; anything else that escapes a route is a 500.
    """

    @staticmethod
    def setup_error_handlers(app: FastAPI) -> None:
        """
        Setup all error handlers for the FastAPI application.
        """

        @app.exception_handler(InventorySyncError)
        async def inventory_sync_error_handler(
            request: Request, exc: InventorySyncError
        ) -> JSONResponse:
            if exc.status_code >= 500:
                logger.error(
                    "Inventory sync error",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "error_type": exc.error_type,
                        "error": exc.message,
                    },
                )
            return InventorySyncErrorHandler._create_error_response(
                request=request,
                status_code=exc.status_code,
                error_type=exc.error_type,
                message=exc.message,
                details=exc.details,
            )

        @app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(
            request: Request, exc: StarletteHTTPException
        ) -> JSONResponse:
            """Handle HTTP exceptions from Starlette/FastAPI."""
            return InventorySyncErrorHandler._create_error_response(
                request=request,
                status_code=exc.status_code,
                error_type="http_error",
                message=str(exc.detail),
            )

        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(
            request: Request, exc: RequestValidationError
        ) -> JSONResponse:
            """Handle request validation errors."""
            error_details = [
                {
                    "field": ".".join(str(loc) for loc in error["loc"]),
                    "message": error["msg"],
                    "type": error["type"],
                }
                for error in exc.errors()
            ]
            return InventorySyncErrorHandler._create_error_response(
                request=request,
                status_code=422,
                error_type="validation_error",
                message="Request validation failed",
                details={"validation_errors": error_details},
            )

        @app.exception_handler(Exception)
        async def unhandled_exception_handler(
            request: Request, exc: Exception
        ) -> JSONResponse:
            logger.error(
                "Unhandled exception occurred",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "exception_type": type(exc).__name__,
                    "exception_message": str(exc),
                },
                exc_info=exc,
            )
            return InventorySyncErrorHandler._create_error_response(
                request=request,
                status_code=500,
                error_type="internal_server_error",
                message="An internal server error occurred",
                details={"exception_type": type(exc).__name__},
            )

    @staticmethod
    def _create_error_response(
        request: Request,
        status_code: int,
        error_type: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """
        Create a standardized error response.

        Args:
            request: The FastAPI request object
            status_code: HTTP status code
            error_type: Type of error for categorization
            message: Human-readable error message
            details: Additional error details

        Returns:
            JSONResponse with standardized error format
        """
        error_response: Dict[str, Any] = {
            "error": {
                "type": error_type,
                "message": message,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "path": request.url.path,
                "method": request.method,
            }
        }

        if details:
            error_response["error"]["details"] = details

        if status_code < 500:
            logger.warning(
                f"Client error: {error_type}",
                extra={
                    "status_code": status_code,
                    "error_type": error_type,
                    "path": request.url.path,
                    "method": request.method,
                },
            )

        return JSONResponse(status_code=status_code, content=error_response)


def setup_inventory_error_handling(app: FastAPI) -> None:
    """Setup error handling for the Inventory Sync Service."""
    InventorySyncErrorHandler.setup_error_handlers(app)
    logger.info("Inventory sync error handling configured")
