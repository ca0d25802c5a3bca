"""API router aggregation."""

from fastapi import APIRouter

from mysre.api.routes.analytics import router as analytics_router
from mysre.api.routes.articles import router as articles_router
from mysre.api.routes.assignments import router as assignments_router
from mysre.api.routes.auth import router as auth_router
from mysre.api.routes.billing import router as billing_router
from mysre.api.routes.brainstorming_sessions import router as brainstorming_sessions_router
from mysre.api.routes.system import router as system_router
from mysre.api.routes.users import router as users_router
from mysre.api.routes.writer_sessions import router as writer_sessions_router

api_router = APIRouter(prefix="/api")
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(articles_router)
api_router.include_router(writer_sessions_router)
api_router.include_router(brainstorming_sessions_router)
api_router.include_router(assignments_router)
api_router.include_router(analytics_router)
api_router.include_router(billing_router)
api_router.include_router(system_router)
