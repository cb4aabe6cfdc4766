"""
FastAPI application entrypoint.
Run with: uvicorn app.main:app --reload --port 8000

API base path: routes are mounted at root (no /api/v1 prefix).
  - Auth:  POST /auth/register, POST /auth/login, GET /auth/me
  - Users: GET /users (admin), GET/PUT/DELETE /users/{id}
  - Projects: POST/GET /projects, GET/PUT/DELETE /projects/{id}, /projects/{id}/members
  - Submissions: POST/GET /submissions, GET/PUT/DELETE /submissions/{id}, PATCH /submissions/{id}/status
  - Reviews: POST /reviews, PUT /reviews/submission/{id}, POST /reviews/approve, POST /reviews/reject, ...
  - Comments: POST /comments, GET /comments/submission/{id}, GET /comments/{id}/thread, ...
  - Notifications: GET /notifications, GET /notifications/unread-count, POST /notifications/read-all, ...

Domain errors from app.services are turned into status codes in app.api.errors.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from app.config import settings, DEFAULT_SECRET_KEY
from app.api.auth import router as auth_router
from app.api.comments import router as comments_router
from app.api.errors import register_exception_handlers
from app.api.notifications import router as notifications_router
from app.api.projects import router as projects_router
from app.api.reviews import router as reviews_router
from app.api.submissions import router as submissions_router
from app.api.users import router as users_router
from app.services.auth import TokenService

app = FastAPI(
    title="Code Review API",
    description="Projects, code submissions, reviews, threaded comments and notifications.",
    version="0.1.0",
)

_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins if _origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.token_service = TokenService.from_settings(settings)
register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(submissions_router)
app.include_router(reviews_router)
app.include_router(comments_router)
app.include_router(notifications_router)


@app.on_event("startup")
def startup():
    """Configure logging and init the SQLite schema. Fail fast if production uses default SECRET_KEY."""
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    _log = logging.getLogger("app.main")
    if settings.is_production and (settings.secret_key or "").strip() == DEFAULT_SECRET_KEY:
        _log.critical("SECRET_KEY must be set in production. Set SECRET_KEY in env or .env.")
        raise RuntimeError("SECRET_KEY must be set in production. Set SECRET_KEY in env or .env.")
    if settings.admin_email_set:
        _log.info("Admin e-mails configured: %s", len(settings.admin_email_set))
    from app.database import init_db
    init_db()


@app.get("/", response_class=HTMLResponse)
def root():
    """Root: minimal page linking to the API docs."""
    return """
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Code Review API</title></head>
    <body style="font-family: system-ui; max-width: 600px; margin: 2rem auto; padding: 1rem;">
    <h1>Code Review API</h1>
    <p>This is the <strong>API server</strong> (port 8000). It returns JSON.</p>
    <ul>
    <li><a href="/docs">OpenAPI docs (Swagger)</a></li>
    <li><a href="/redoc">ReDoc</a></li>
    <li>Health: <a href="/health">/health</a></li>
    </ul>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Health check (JSON)."""
    return {"status": "ok", "message": "Code Review API"}
