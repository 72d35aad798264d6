# Hearth API entry point
import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError

from .settings import settings
from .routers.ready import router as ready_router
from .routers.themes import router as themes_router
from .routers.tasks import router as tasks_router
from .routers.comments import router as comments_router
from .routers.projects import router as projects_router
from .routers.family_members import router as family_members_router
from .routers.lists import router as lists_router
from .routers.recipes import router as recipes_router
from .routers.meal_plans import router as meal_plans_router
from .routers.meal_planning_prefs import router as meal_planning_prefs_router
from .routers.push import router as push_router
from .routers.household import router as household_router
from .routers.conversations import router as conversations_router
from .routers.ai import router as ai_router

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("hearth")

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)

app = FastAPI(title="Hearth API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
# default_limits are only enforced by the middleware
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content={"detail": "Conflicts with existing data"})


@app.exception_handler(RuntimeError)
async def runtime_error_handler(request: Request, exc: RuntimeError):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(themes_router, prefix="/api/themes", tags=["themes"])
app.include_router(tasks_router, prefix="/api/tasks", tags=["tasks"])
app.include_router(comments_router, prefix="/api/tasks", tags=["comments"])
app.include_router(projects_router, prefix="/api/projects", tags=["projects"])
app.include_router(family_members_router, prefix="/api/family-members", tags=["family"])
app.include_router(lists_router, prefix="/api/lists", tags=["lists"])
app.include_router(recipes_router, prefix="/api/recipes", tags=["recipes"])
app.include_router(meal_plans_router, prefix="/api/meal-plans", tags=["meal-plans"])
app.include_router(meal_planning_prefs_router, prefix="/api/meal-planning-preferences", tags=["meal-plans"])
app.include_router(push_router, prefix="/api/push", tags=["push"])
app.include_router(household_router, prefix="/api/household", tags=["household"])
app.include_router(conversations_router, prefix="/api/conversations", tags=["ai"])
app.include_router(ai_router, prefix="/api/ai", tags=["ai"])
