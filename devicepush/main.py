from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from devicepush.api.api import api_router
from devicepush.core.config import settings
from devicepush.db.session import run_migrations

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_URLS,
    allow_credentials="*" not in settings.FRONTEND_URLS,
    allow_methods=["POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(api_router)


@app.get("/health", include_in_schema=False)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.on_event("startup")
async def on_startup() -> None:
    await run_migrations()
