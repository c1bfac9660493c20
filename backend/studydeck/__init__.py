from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studydeck.config import settings
from studydeck.db import init_all_databases


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_all_databases(settings.data_dir)
    from studydeck.services.task_registry import recover_stuck_materials

    await recover_stuck_materials()
    yield


def create_app() -> FastAPI:
    application = FastAPI(title="StudyDeck Backend", version="0.1.0", lifespan=lifespan)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from studydeck.routers import books, generation, health, materials, review, upload

    application.include_router(health.router)
    application.include_router(books.router, prefix="/books", tags=["books"])
    application.include_router(upload.router, prefix="/books", tags=["materials"])
    application.include_router(generation.router, prefix="/books", tags=["generation"])
    application.include_router(materials.router, prefix="/materials", tags=["materials"])
    application.include_router(review.router, tags=["review"])

    return application


app = create_app()
