import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager
from quiniela.config import LOG_LEVEL
from quiniela.database import create_db_and_tables

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: Create database tables
    create_db_and_tables()
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Quiniela Standings Engine",
    description="Group standings, best thirds and knockout bracket resolution",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
from quiniela.routers import admin_groups

app.include_router(admin_groups.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
