import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Path, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from records_api.config import Settings, get_settings
from records_api.crud import RecordRepository
from records_api.database import build_engine, build_sessionmaker, create_tables, get_db
from records_api.errors import RecordError
from records_api.log import logger, setup_logging
from records_api.schemas import (
    ErrorResponse,
    RecordCount,
    RecordCreate,
    RecordOut,
    RecordPage,
    RecordUpdate,
    format_errors,
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    404: {"model": ErrorResponse, "description": "Record not found"},
    409: {"model": ErrorResponse, "description": "Email already in use"},
}


def get_repository(db: AsyncSession = Depends(get_db)) -> RecordRepository:
    return RecordRepository(db)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, service=settings.APP_NAME)

    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME}")
        if settings.DB_CREATE_TABLES:
            await create_tables(engine)
        yield
        await engine.dispose()

    app = FastAPI(title="Records API", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    register_routes(app)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RecordError)
    async def record_error_handler(request: Request, exc: RecordError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Validation failed", "errors": format_errors(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "errors": []},
        )


def register_routes(app: FastAPI) -> None:
    @app.post(
        "/records",
        response_model=RecordOut,
        status_code=status.HTTP_201_CREATED,
        responses=ERROR_RESPONSES,
    )
    async def create_record(
        payload: RecordCreate,
        repo: RecordRepository = Depends(get_repository),
    ):
        return await repo.create(payload)

    @app.get("/records", response_model=RecordPage, responses=ERROR_RESPONSES)
    async def list_records(
        page: int = Query(1, ge=1, description="Page number, starting at 1"),
        limit: int = Query(10, ge=1, description="Records per page"),
        search: Optional[str] = Query(None, description="Case-insensitive substring filter"),
        repo: RecordRepository = Depends(get_repository),
    ):
        return await repo.list_page(page, limit, search)

    @app.get("/records/count", response_model=RecordCount)
    async def count_records(repo: RecordRepository = Depends(get_repository)):
        return RecordCount(total=await repo.count())

    @app.get("/records/{record_id}", response_model=RecordOut, responses=ERROR_RESPONSES)
    async def get_record(
        record_id: int = Path(..., description="Record id"),
        repo: RecordRepository = Depends(get_repository),
    ):
        return await repo.get(record_id)

    @app.patch("/records/{record_id}", response_model=RecordOut, responses=ERROR_RESPONSES)
    async def update_record(
        payload: RecordUpdate,
        record_id: int = Path(..., description="Record id"),
        repo: RecordRepository = Depends(get_repository),
    ):
        return await repo.update(record_id, payload)

    @app.delete(
        "/records/{record_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        responses=ERROR_RESPONSES,
    )
    async def delete_record(
        record_id: int = Path(..., description="Record id"),
        repo: RecordRepository = Depends(get_repository),
    ):
        await repo.delete(record_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/health", status_code=status.HTTP_200_OK)
    async def health_check(db: AsyncSession = Depends(get_db)):
        # Execute a simple query to verify the connection
        start = time.time()
        try:
            await db.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Health check failed")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unhealthy"},
            )
        end = time.time()
        return {"status": "healthy", "db_response_time": f"{(end-start):.4f}s"}
