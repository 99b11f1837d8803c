import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.api.endpoints import auth, permissions, user_groups, user_permissions, users, logs
from app.core.config import settings
from app.core.exceptions import AccessControlError, AuthenticationRequired, AuthorizationDenied
from app.core.logging import capture_error, get_logger, init_sentry, setup_logging
from app.db.session import SessionAsync, init_db
from app.middleware.logging import AccessLoggingMiddleware, granted_permission
from app.models.error_log import ErrorLog
from app.helpers.getters import isTestMode

# Initialize logging and error tracking
setup_logging()
init_sentry()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.CREATE_TABLES_ON_STARTUP:
        await init_db()
    yield


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="""
## Authentication

OAuth2 password flow: click **Authorize** and enter your **email** in the
`username` field, or call `POST /api/auth/login` with a JSON body and send the
returned token as `Authorization: Bearer <token>`.

## Permissions

Every admin route is guarded by a named permission and an action
(`view`, `create`, `edit`, `delete`). A user's effective permissions are the
union of direct grants and the grants of every active group they belong to.
Super admins bypass all checks.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.ALLOW_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(AccessLoggingMiddleware, enabled=settings.ACCESS_LOG_ENABLED and not isTestMode())


# ==================== Error handlers ====================

@app.exception_handler(AccessControlError)
async def access_control_error_handler(request: Request, exc: AccessControlError):
    content = {"detail": exc.message}
    headers = None
    if isinstance(exc, AuthenticationRequired):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, AuthorizationDenied):
        content["missing"] = exc.missing
        logger.info(f"{request.method} {request.url.path} denied: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        errors[str(error["loc"][-1])] = error["msg"]
    logger.info(f"Request validation error on {request.url.path}: {errors}")
    return JSONResponse(status_code=400, content=jsonable_encoder({"detail": "Validation failed", "errors": errors}))


async def record_error(request: Request, exc: Exception, event_id):
    try:
        async with SessionAsync() as db:
            db.add(ErrorLog(
                user_id=getattr(request.state, "user_id", None),
                permission=granted_permission(request),
                error_type=type(exc).__name__,
                error_message=str(exc) or repr(exc),
                stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                endpoint=request.url.path,
                method=request.method,
                request_id=getattr(request.state, "request_id", None),
                sentry_event_id=event_id,
                ip_address=request.client.host if request.client else None,
                severity="error",
            ))
            await db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to record error log: {e}")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    event_id = capture_error(
        exc,
        context={"request": {"path": request.url.path, "method": request.method}},
        tags={"endpoint": request.url.path},
    )
    await record_error(request, exc, event_id)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ==================== Routes ====================

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(permissions.router, prefix="/api/permissions", tags=["permissions"])
app.include_router(user_groups.router, prefix="/api/user-groups", tags=["user-groups"])
app.include_router(user_permissions.router, prefix="/api/user-permissions", tags=["user-permissions"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(logs.router, prefix="/api/logs", tags=["logs"])


@app.get("/")
async def root():
    return {"message": f"Welcome to the {settings.APP_NAME} API. OpenAPI docs at /docs"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
