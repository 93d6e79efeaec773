"""Start the OPWS API server."""
import uvicorn

from opws.config import settings

if __name__ == "__main__":
    print(f"🚀 Starting OPWS API on {settings.API_HOST}:{settings.API_PORT}...")
    uvicorn.run("opws.main:app", host=settings.API_HOST, port=settings.API_PORT, log_level="info")
