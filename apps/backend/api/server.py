import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.requests.api_slide_edit import router as slide_edit_router
from setup_logging_optimized import get_logger, setup_logging

load_dotenv()
setup_logging()

logger = get_logger(__name__)

DEV_ORIGINS = {
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
}


def get_allowed_origins() -> list:
    environment = (os.getenv("ENVIRONMENT") or os.getenv("ENV") or "development").lower()
    origins = {origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "").split(",") if origin.strip()}
    if environment != "production":
        origins.update(DEV_ORIGINS)
    return sorted(origins)


def create_app() -> FastAPI:
    app = FastAPI(title="Slide Editing API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )
    app.include_router(slide_edit_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "9090"))
    host = os.getenv("HOST", "0.0.0.0")
    logger.info(f"Starting slide editing API on {host}:{port}")
    uvicorn.run("api.server:app", host=host, port=port, reload=False, workers=1)
