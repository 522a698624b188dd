"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webpbatch import config as app_config
from webpbatch.api.routes import router
from webpbatch.config import CORS_ORIGINS, logger as config_logger

logging.getLogger("uvicorn").setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_config.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    config_logger.info("Converter API started")
    yield
    config_logger.info("Converter API shutting down")


app = FastAPI(
    title="WebP Batch Converter API",
    description="Convert images to WebP at the best quality that fits a target size.",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    from webpbatch.config import HOST, PORT
    uvicorn.run("webpbatch.main:app", host=HOST, port=PORT, reload=True)
