import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from venti import models  # noqa: F401  registers tables on Base.metadata
from venti.core.config import Base, engine, settings
from venti.core.exceptions import register_exception_handlers
from venti.api.routers import auth, profiles, journal, moods, stories, chat, functions

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# =====================================================================
# CREATE APP
# =====================================================================

app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    description="Breakup recovery companion API",
    version="1.0.0",
)

# =====================================================================
# CORS MIDDLEWARE - MUST BE FIRST!
# =====================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)
logger.info(f"CORS allowed origins: {settings.CORS_ORIGINS}")

register_exception_handlers(app)

# =====================================================================
# DATABASE INITIALIZATION
# =====================================================================

Base.metadata.create_all(bind=engine)

# =====================================================================
# HEALTH CHECK (before routers)
# =====================================================================


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# =====================================================================
# ROUTES
# =====================================================================

app.include_router(auth.router)
app.include_router(profiles.router)
app.include_router(journal.router)
app.include_router(moods.router)
app.include_router(stories.router)
app.include_router(chat.router)
app.include_router(functions.router)

# =====================================================================
# ROOT ENDPOINT
# =====================================================================


@app.get("/")
def root():
    """API root endpoint."""
    return {
        "message": "Welcome to Venti API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "auth": "/auth",
            "profiles": "/profiles",
            "journal_entries": "/journal-entries",
            "moods": "/moods",
            "stories": "/stories",
            "chat_messages": "/chat-messages",
            "functions": "/functions",
        },
    }
