import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from freight_tracking.core.exceptions import BaseApplicationException
from freight_tracking.database import Base, engine
from freight_tracking.routers import tracking

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Freight Tracking API")


# ============================================================================
# GLOBAL EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(BaseApplicationException)
async def custom_application_exception_handler(request: Request, exc: BaseApplicationException):
    """Handler per eccezioni custom dell'applicazione"""
    logger.error(f"Application exception: {exc.error_code} - {exc.message}", extra={
        "error_code": exc.error_code,
        "details": exc.details,
        "path": str(request.url),
        "method": request.method
    })

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


app.include_router(tracking.router)

Base.metadata.create_all(bind=engine)
