import os
import logging.config
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from auth_service.app.routes import auth
from fastapi import FastAPI, Request, Response

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "common": {
            "format": "[{asctime}] {levelname} {name} - {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "common"},
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.config.dictConfig(LOGGING)
    yield


app = FastAPI(lifespan=lifespan)
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])

@app.get("/")
def root():
    return {"message": "Auth Service Running"}

@app.api_route("/ping", methods=["GET", "HEAD"])
def ping(request: Request):
    if request.method == "HEAD":
        return Response(status_code=200)
    return {"message": "pong"}
