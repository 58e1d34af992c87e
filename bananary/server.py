# bananary/server.py
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

import logging

from bananary.core.config import CORS_ORIGINS, LOG_LEVEL
from bananary.core.database import engine, init_models
from bananary.core.errors import register_exception_handlers

from bananary.api.root import router as root_router
from bananary.api.auth import router as auth_router
from bananary.api.user import router as user_router
from bananary.api.credits import router as credits_router
from bananary.api.payment import router as payment_router
from bananary.api.history import router as history_router
from bananary.api.generate import router as generate_router

# ================== SETUP ==================

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("bananary")

app = FastAPI(title="Nano Bananary API")

register_exception_handlers(app)

# ================== ROUTERS ==================

app.include_router(root_router)
app.include_router(auth_router)
app.include_router(user_router)
app.include_router(credits_router)
app.include_router(payment_router)
app.include_router(history_router)
app.include_router(generate_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ================== LIFECYCLE ==================

@app.on_event("startup")
async def startup():
    await init_models()
    logger.info("Database ready")


@app.on_event("shutdown")
async def shutdown():
    await engine.dispose()
