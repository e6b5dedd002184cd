from fastapi import FastAPI
from chemstock.app.api.v1.router import router as v1_router
from chemstock.app.logging_config import configure_logging

configure_logging()

app = FastAPI(title="CHEMSTOCK", version="0.1.0")
app.include_router(v1_router, prefix="/v1")
