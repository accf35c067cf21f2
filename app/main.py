"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import router as api_router

app = FastAPI(
    title="Help Center AI Server",
    description="Article retrieval, competitor-researched generation and chat deflection",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    from app.core.config import get_settings

    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().PORT)
