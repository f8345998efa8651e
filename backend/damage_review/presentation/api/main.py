from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from damage_review.core.di.service_locator import ServiceLocator
from damage_review.presentation.api.v1.canvas_router import router as canvas_router
from damage_review.presentation.api.v1.damage_router import router as damage_router
from damage_review.presentation.api.v1.recap_router import router as recap_router
from damage_review.presentation.api.v1.review_router import router as review_router


app = FastAPI(title="Damage Review Backend", version="1.0.0")

# Enable permissive CORS (allow all origins). Use with caution in production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    # Builds the store so a configured seed file is loaded before the first request
    ServiceLocator.store()


@app.get("/")
def root():
    cfg = ServiceLocator.config()
    return {"status": "ok", "message": "Damage Review Backend running", "env": cfg.app_env}


app.include_router(review_router)
app.include_router(canvas_router)
app.include_router(damage_router)
app.include_router(recap_router)
