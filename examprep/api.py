from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from examprep.bootstrap import build_event_emitter, build_rate_limiter
from examprep.config import create_db, settings
from examprep.routes.auth_routes import auth_routes
from examprep.routes.engagement_routes import engagement_routes
from examprep.routes.test_routes import test_routes
from examprep.routes.webhook_routes import webhook_routes
from examprep.services.errors import PrepError
from examprep.utils.dependencies import enforce_rate_limit
from examprep.utils.logger import clear_request_id, configure_logging, set_request_id

logger = configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db()
    app.state.events = build_event_emitter(settings)
    app.state.rate_limiter = build_rate_limiter()
    logger.info("exam-prep started events=%s", type(app.state.events).__name__)
    yield
    close = getattr(app.state.events, "close", None)
    if callable(close):
        close()


app = FastAPI(title="exam-prep", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = set_request_id(request.headers.get("x-request-id"))
    try:
        logger.info("request start method=%s path=%s client=%s", request.method, request.url.path, request.client)
        response: Response = await call_next(request)
        logger.info("request end status=%s method=%s path=%s", response.status_code, request.method, request.url.path)
        response.headers["x-request-id"] = rid
        return response
    except Exception:
        logger.exception("request error method=%s path=%s", request.method, request.url.path)
        raise
    finally:
        clear_request_id()


@app.exception_handler(PrepError)
async def prep_error_handler(request: Request, exc: PrepError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "domain error status=%s code=%s method=%s path=%s",
            exc.status_code, exc.code, request.method, request.url.path, exc_info=exc,
        )
    else:
        logger.warning(
            "domain error status=%s code=%s method=%s path=%s message=%s",
            exc.status_code, exc.code, request.method, request.url.path, exc.message,
        )
    headers = {}
    if "retry_after" in exc.details:
        headers["Retry-After"] = str(exc.details["retry_after"])
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()}, headers=headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    # Log server-side errors with stack traces; client errors as warnings.
    if exc.status_code >= 500:
        logger.exception("http error status=%s method=%s path=%s detail=\n%s", exc.status_code, request.method, request.url.path, exc.detail)
    else:
        logger.warning("http error status=%s method=%s path=%s detail=\n%s", exc.status_code, request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("validation error method=%s path=%s errors=\n%s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak internal exception details to clients.
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


@app.get("/")
def read_root():
    return {"message": "exam-prep is healthy"}


app.include_router(auth_routes, prefix="/auth")
app.include_router(test_routes, prefix="/api", dependencies=[Depends(enforce_rate_limit)])
app.include_router(engagement_routes, prefix="/api", dependencies=[Depends(enforce_rate_limit)])
app.include_router(webhook_routes, prefix="/api/webhooks")

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
