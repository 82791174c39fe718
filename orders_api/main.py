"""
Module principal de l'application FastAPI.

Configure le logging et le CORS, puis monte l'API GraphQL des commandes sur
/graphql.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orders_api.config import settings
from orders_api.database import create_tables
from orders_api.orders.router import graphql_router

# Configurer le logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.CREATE_TABLES_ON_STARTUP:
        await create_tables()
        logger.info("Tables de la base de données vérifiées/créées.")
    yield


app = FastAPI(
    title="LivrerJardiner Orders API",
    description="API GraphQL de consultation et de passage des commandes.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ======================================================
# Inclure les routeurs
# ======================================================
app.include_router(graphql_router, prefix="/graphql", tags=["GraphQL"])

logger.info(f"API GraphQL montée sur /graphql (GraphiQL: {settings.GRAPHIQL_ENABLED})")
