from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from exam_portal.config import settings
from exam_portal.database import init_db
from exam_portal.services.exam_timer import attempt_manager
from exam_portal.storage import store

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug
)

# Exam countdowns live for the lifetime of the app
app.state.attempts = attempt_manager

# Browser clients on the dev servers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Create storage tables and load the persisted state"""
    init_db()
    store.hydrate()

    print(f"🚀 {settings.app_name} is starting...")
    print(f"📚 Database: {settings.database_url} (key: {settings.storage_key})")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop running exam countdowns"""
    app.state.attempts.shutdown()


@app.get("/")
async def root():
    """Service banner"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.api_version,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Liveness probe with running countdown count"""
    running = sum(1 for a in app.state.attempts.attempts.values() if not a.submitted)
    return {"status": "healthy", "open_attempts": running}


# Routers
from exam_portal.routes import auth, catalog, exam, results  # noqa: E402

app.include_router(auth.router, tags=["Auth"])
app.include_router(catalog.router, tags=["Catalog"])
app.include_router(exam.router, prefix="/api/exam", tags=["Exam"])
app.include_router(results.router, prefix="/api/results", tags=["Results"])


def run():
    """Console entry point"""
    import uvicorn

    uvicorn.run("exam_portal.main:app", host=settings.host, port=settings.port, reload=settings.debug)
