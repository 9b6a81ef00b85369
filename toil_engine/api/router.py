from fastapi import APIRouter

from toil_engine.api.actions import actions_router
from toil_engine.api.approvals import approvals_router, thresholds_router
from toil_engine.api.entries import entries_router
from toil_engine.api.holidays import holidays_router
from toil_engine.api.toil import toil_router
from toil_engine.api.users import users_router

api_router = APIRouter()
api_router.include_router(users_router)
api_router.include_router(entries_router)
api_router.include_router(toil_router)
api_router.include_router(actions_router)
api_router.include_router(approvals_router)
api_router.include_router(thresholds_router)
api_router.include_router(holidays_router)
