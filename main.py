from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session
from contextlib import asynccontextmanager
from pathlib import Path
import logging
import uvicorn

from database import engine, Base, get_db, settings
from errors import AppError
from routers import auth, events, admin, members, donations, photos, jobs
from schemas import Stats
from services.members import landing_stats
import models  # noqa: F401  (registers tables)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting up ({settings.ENVIRONMENT})")
    yield
    # Shutdown
    logger.info("Shutting down")

app = FastAPI(
    title="Alumni Association API",
    description="Member directory, events, donations and gallery for the alumni association",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Include routers
app.include_router(auth.router, prefix="/auth", tags=["authentication"])
app.include_router(members.router, prefix="/members", tags=["members"])
app.include_router(events.router, prefix="/events", tags=["events"])
app.include_router(donations.router, prefix="/donations", tags=["donations"])
app.include_router(photos.router, prefix="/photos", tags=["photos"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])
app.include_router(jobs.router, prefix="/jobs", tags=["jobs"])

app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

@app.get("/")
async def root():
    return {"message": "Alumni Association API", "version": "1.0.0"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

@app.get("/stats", response_model=Stats)
async def get_stats(db: Session = Depends(get_db)):
    """Headline numbers for the landing page"""
    return landing_stats(db)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
