from fastapi import FastAPI
from hls_reaper.routers import health, segments

app = FastAPI(
    title="HLS Reaper",
    description="Inspect which HLS segments the reaper keeps and deletes",
    version="0.1.0"
)

app.include_router(segments.router)
app.include_router(health.router)

@app.get("/api/v1/health")
def health_check():
    return {
        "status": "healthy",
        "version": "0.1.0",
        "service": "HLS Reaper"
    }
