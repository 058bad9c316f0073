"""
Main FastAPI application entry point for Identity Reconciliation System
This file sets up the FastAPI application with configuration, middleware,
error translation and the /identify endpoint. It serves as the entry point
for both local development (uvicorn) and AWS Lambda deployment (Mangum).
"""

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import traceback
from datetime import datetime, timezone

from schemas.identify import IdentifyRequest, IdentifyResponse, ErrorDetail, ErrorResponse
from services.contact_store import ContactStore
from services.exceptions import IdentityValidationError, InvariantViolation, StoreError
from services.identity_service import IdentityService, identity_service
from config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    debug=settings.DEBUG
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def get_identity_service() -> IdentityService:
    """Dependency returning the process-wide reconciliation service"""
    return identity_service


def _error(status_code: int, error: str, message: str, details=None) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(error=error, message=message, details=details).model_dump()
    )


# Exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 instead of FastAPI's 422"""
    logger.warning(f"Validation error for {request.url}: {exc.errors()}")

    error_details = [
        ErrorDetail(
            field=" -> ".join(str(x) for x in error["loc"]),
            message=error["msg"],
            type=error["type"]
        ).model_dump()
        for error in exc.errors()
    ]

    error_response = ErrorResponse(
        error="ValidationError",
        message="Request validation failed",
        details={"errors": error_details}
    )

    return JSONResponse(
        status_code=400,
        content=error_response.model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(f"Unexpected error for {request.url}: {exc}")
    logger.error(f"Traceback: {traceback.format_exc()}")

    error_response = ErrorResponse(
        error="InternalServerError",
        message="An unexpected error occurred"
    )

    return JSONResponse(
        status_code=500,
        content=error_response.model_dump()
    )


@app.get("/")
async def root():
    """
    Root endpoint that returns basic API information
    """
    return {
        "message": "Identity Reconciliation API is running",
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check(service: IdentityService = Depends(get_identity_service)):
    """
    Health check endpoint for monitoring and load balancer health checks
    """
    connected = await service.db_manager.test_connection()

    return {
        "status": "healthy" if connected else "degraded",
        "environment": settings.ENVIRONMENT,
        "version": settings.API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "lambda": settings.is_lambda_environment(),
        "database": {
            "status": "connected" if connected else "disconnected",
            "rds_configured": bool(settings.RDS_HOSTNAME and settings.RDS_HOSTNAME != "localhost"),
            "ssl_mode": settings.DB_SSL_MODE
        }
    }


@app.get("/debug/contacts")
async def debug_contacts(service: IdentityService = Depends(get_identity_service)):
    """
    Debug endpoint listing the total and the ten most recent contacts
    """
    if not settings.DEBUG:
        raise _error(404, "NotFound", "Debug endpoints are disabled")

    try:
        async with service.db_manager.get_session() as session:
            store = ContactStore(session)
            total_count = await store.count()
            contacts = [contact.to_dict() for contact in await store.recent(10)]
    except Exception as e:
        logger.error(f"Debug contacts error: {e}")
        raise _error(500, "DatabaseError", "Database query failed")

    return {
        "total_contacts": total_count,
        "recent_contacts": contacts,
        "message": "Database query successful"
    }


@app.post("/identify", response_model=IdentifyResponse)
async def identify_endpoint(
    request: IdentifyRequest,
    service: IdentityService = Depends(get_identity_service)
):
    """
    Main identity reconciliation endpoint

    Links customer identities based on email and/or phone number.
    Returns consolidated contact information including all linked emails,
    phone numbers, and secondary contact IDs.

    **Algorithm:**
    1. Find existing contacts matching email or phone
    2. If no matches -> create new primary contact
    3. Collect every contact linked to the matches
    4. Several primaries -> the oldest stays primary, the rest become secondary
    5. New email or phone -> create secondary contact
    6. Return consolidated contact information, primary's details first
    """
    logger.info(f"Processing identify request: email={request.email}, phone={request.phoneNumber}")

    try:
        response = await service.identify_contact(request)

    except IdentityValidationError as e:
        logger.warning(f"Validation error in identify endpoint: {e}")
        raise _error(400, "ValidationError", str(e))

    except StoreError as e:
        if e.is_connection_error:
            logger.error(f"Database connection error in identify endpoint: {e}")
            raise _error(
                503,
                "DatabaseConnectionError",
                "Database is currently unavailable. Please try again later."
            )
        logger.error(f"Database error in identify endpoint: {e}")
        raise _error(500, "DatabaseError", "Unable to process identity reconciliation request")

    except InvariantViolation as e:
        logger.critical(f"Identity invariant violated: {e}")
        raise _error(500, "InvariantViolation", "Stored identity links are inconsistent")

    logger.info(f"Successfully processed request. Primary contact ID: {response.contact.primaryContactId}")
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1  # The reconcile lock is per process
    )
