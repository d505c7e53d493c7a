from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

import models  # noqa: F401  (registers tables on Base.metadata)
from database import Base, engine, settings
from api import rooms, players, actions

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Intrapreneurs Online API",
    description="Authoritative room game-state engine for asynchronous 2-4 seat games",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed requests never reach the store
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request.", "details": jsonable_encoder(exc.errors())}
    )


# Include routers
app.include_router(rooms.router)
app.include_router(players.router)
app.include_router(actions.router)


@app.get("/")
def root():
    return {"message": "Intrapreneurs Online API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
