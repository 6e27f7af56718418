from fastapi import APIRouter
from app.api.v1.endpoints import admin, waitlist

api_router = APIRouter()

# Public: /waitlist, /verify-email/{token}, /waitlist/save-post
api_router.include_router(waitlist.router)
# Wallet-signature protected
api_router.include_router(admin.router)
