from contextlib import asynccontextmanager

from fastapi import FastAPI

from cpcombat import config
from cpcombat.api.routers.characters import router as characters_router
from cpcombat.api.routers.encounter_runtime import router as encounter_runtime_router
from cpcombat.api.routers.encounter_saves import router as encounter_saves_router
from cpcombat.api.routers.encounters import router as encounters_router
from cpcombat.db.init_db import init_db
from cpcombat.logging_setup import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(config.LOG_LEVEL, json=config.LOG_JSON)
    init_db()
    yield


app = FastAPI(title="Cyberpunk 2020 Combat Engine", lifespan=lifespan)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(characters_router)
app.include_router(encounters_router)
app.include_router(encounter_saves_router)
app.include_router(encounter_runtime_router)
