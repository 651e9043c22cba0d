from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from aidchain.api import routers
from aidchain.core.config import get_settings
from aidchain.core.logging_config import configure_logging

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="AidChain Ledger API",
    root_path=settings.API_ROOT_PATH
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def read_root():
    return {"message": "Welcome to the AidChain Ledger API"}


app.include_router(routers.router)

handler = Mangum(app)
