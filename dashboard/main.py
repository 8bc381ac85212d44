from contextlib import asynccontextmanager
from fastapi import FastAPI

from dashboard.routers import auth, subtasks, tasks
from dashboard.cache.layer import cache_layer
from dashboard.cache.provider import cache_provider


@asynccontextmanager
async def lifespan(app: FastAPI):
    # resolve the backend once, before the first request
    await cache_provider.get_store()
    yield
    await cache_provider.close()


app = FastAPI(
    title="Project Dashboard API",
    description="Tasks, subtasks and worked hours with a Redis-backed cache layer",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(subtasks.router)


@app.get("/")
async def root():
    return {
        "message": "Welcome to Project Dashboard API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    store = await cache_provider.get_store()
    return {
        "status": "healthy",
        "cache": store.kind.value,
        "cache_stats": cache_layer.get_stats(),
    }
