from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.audit import router as audit_router
from app.api.kb_documents import router as documents_router
from app.api.kb_documents import upload_alias_router
from app.api.leaderboard import router as leaderboard_router
from app.api.notifications import router as notifications_router
from app.api.onboarding import router as onboarding_router
from app.api.users import router as users_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.kb_lifecycle import build_lifecycle

configure_logging()

app = FastAPI(title=f"{settings.brand_name} API")
app.state.lifecycle = build_lifecycle()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(documents_router)
_include_api_router(upload_alias_router)
_include_api_router(leaderboard_router)
_include_api_router(users_router)
_include_api_router(notifications_router)
_include_api_router(onboarding_router)
_include_api_router(audit_router)

if Path(settings.attachment_upload_dir).is_dir():
    app.mount(
        settings.attachment_url_prefix,
        StaticFiles(directory=settings.attachment_upload_dir),
        name="attachments",
    )


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
