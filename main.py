from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

import models  # noqa: F401  註冊所有 table 到 Base.metadata
from database import Base, engine, settings
from api import raffles, registries, accounts
from core.entropy import close_entropy_source

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 在應用啟動時建立資料庫表
    Base.metadata.create_all(bind=engine)
    yield
    # Shutdown: 關閉熵來源的 HTTP 連線
    close_entropy_source()


app = FastAPI(
    title="Provably Fair Raffle API",
    description="Commit-reveal raffles: slot sales, winner reveal and registry",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(registries.router)
app.include_router(raffles.router)
app.include_router(accounts.router)


@app.get("/")
def root():
    return {"message": "Provably Fair Raffle API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
