from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import get_settings
from .context import AppContext, build_context, close_context
from .errors import install_exception_handlers
from .api.routers import health as health_router
from .api.routers import otp as otp_router
from .api.routers import newsletter as newsletter_router
from .api.routers import uploads as uploads_router
from .api.routers import notifications as notifications_router
from .api.routers import metrics as metrics_router
from .observability.logging import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware
import uvicorn

settings = get_settings()
setup_logging()


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # a context handed in from outside (tests) is owned by the caller
        if context is not None:
            app.state.context = context
            yield
            return
        ctx = await build_context(settings)
        app.state.context = ctx
        try:
            yield
        finally:
            close_context(ctx)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)
    if context is not None:
        app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[settings.REQUEST_ID_HEADER],
    )

    # then your custom middlewares
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(MetricsHTTPMiddleware)

    install_exception_handlers(app)

    app.include_router(health_router.router)
    app.include_router(otp_router.router)
    app.include_router(newsletter_router.router)
    app.include_router(uploads_router.router)
    app.include_router(notifications_router.router)
    app.include_router(metrics_router.router)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.APP_HOST, port=settings.PORT, reload=settings.DEBUG)
