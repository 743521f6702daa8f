from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from app.config import settings
from app.data import new_data
from app.log import build_logger
from app.middleware import TimingMiddleware
from app.routers import articles, metrics, tags, upload, users
from app.schemas import FieldError, ValidationErrorResponse

logger = build_logger(settings)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: a missing database or cache aborts here with DataError.
    data, release = await new_data(settings, logger)
    app.state.data = data
    yield
    # Shutdown
    await release()

app = FastAPI(
    title="Blog Service",
    description="Users, articles and tags with soft delete and Redis caching",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.logger = logger

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        # loc is ("body" | "path" | "query", field, [index...])
        field = ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0])
        details.append(FieldError(field=field, constraint=err["type"], message=err["msg"]))
    body = ValidationErrorResponse(details=details)
    return JSONResponse(status_code=422, content=body.model_dump())

# Routers
app.include_router(users.router)
app.include_router(articles.router)
app.include_router(tags.router)
app.include_router(upload.router)
app.include_router(metrics.router)

# Uploaded files
Path(settings.UPLOAD_SAVE_PATH).mkdir(parents=True, exist_ok=True)
app.mount("/c/static", StaticFiles(directory=settings.UPLOAD_SAVE_PATH), name="static")

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
