import logging
import os

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routers import (
    auth,
    element_type_bom,
    element_types_with_updated_bom,
    health,
    inventory,
    inventory_adjustments,
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="Precast Inventory Adjustment API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


app.add_exception_handler(RequestValidationError, request_validation_error_handler)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(element_types_with_updated_bom.router)
app.include_router(inventory_adjustments.router)
app.include_router(element_type_bom.router)
app.include_router(inventory.router)


@app.get("/")
def root():
    return {"status": "ok"}
