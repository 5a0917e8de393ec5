from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routers.reports import router as reports_router
from routers.photos import router as photos_router

from database import engine, Base
import app_models  # registers the photos table on Base
import logging

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Dump Map API",
    description="Illegal dumping reports: catalog ingestion, map clustering and report photos",
    version="1.0.0"
)

# -------------------------------------
# Startup - Create Database Tables
# -------------------------------------
@app.on_event("startup")
async def startup_event():
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        logger.warning("Application will continue, but photo uploads may fail")


# -------------------------------------
# CORS SETTINGS
# -------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------
# ROUTERS
# -------------------------------------
app.include_router(reports_router)
app.include_router(photos_router)


# -------------------------------------
# Root Endpoint
# -------------------------------------
@app.get("/")
async def root():
    return {
        "message": "Dump Map API",
        "endpoints": {
            "Map sessions": "/api/reports/sessions",
            "Upload photo": "/images",
            "List photos": "/images",
            "Get photo": "/image/{filename}",
        }
    }

#--------------Health Check Endpoint----------------
@app.get("/health")
async def health_check():
    return {"status": "ok"}
