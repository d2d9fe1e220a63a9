"""
Conciliador - extrato bancário x Omie x fatura do cartão
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conciliador.config import settings
from conciliador.routers import conciliacao, health

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Conciliador",
    description="Conciliação extrato bancário x Omie x fatura do cartão de crédito",
    version="1.0.0",
)

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(conciliacao.router)
