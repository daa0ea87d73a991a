import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app.api.v1.router import router as v1_router
from backend.app.core.config import settings
from backend.app.core.errors import ModelValidationError
from backend.app.core.logging import configure_logging

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(v1_router, prefix=settings.api_prefix)


# ---------- Erreurs : toujours {"message": ...} ----------
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    parts = []
    for err in exc.errors():
        field = ".".join(str(loc) for loc in err.get("loc", ()) if loc != "body")
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"message": "; ".join(parts) or "Invalid request"})


@app.exception_handler(ModelValidationError)
async def model_validation_error(request: Request, exc: ModelValidationError):
    return JSONResponse(status_code=400, content={"message": str(exc)})


@app.exception_handler(IntegrityError)
async def integrity_error(request: Request, exc: IntegrityError):
    # la session de la requête est fermée par get_db, la transaction est perdue
    logger.warning("db.integrity_error", path=request.url.path, error=str(exc.orig))
    return JSONResponse(
        status_code=400,
        content={"message": "Operation violates a data constraint (duplicate, missing reference or negative stock)"},
    )


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("request.unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})
