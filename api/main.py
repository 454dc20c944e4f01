# ABOUTME: FastAPI app for the 12-week tracker: auth, planning (goals/tactics) and tracking routers.
# ABOUTME: Run with `uvicorn api.main:app`; CORS open to the Streamlit client origins.

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.auth_routes import auth_router
from api.plan_routes import plan_router
from api.tracking_routes import tracking_router
from core.config import CORS_ORIGINS

app = FastAPI(title="12-Week Year Tracker API")
app.include_router(auth_router)
app.include_router(plan_router)
app.include_router(tracking_router)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def get_health():
    return {"status": "ok"}
