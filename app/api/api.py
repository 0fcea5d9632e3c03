from fastapi import APIRouter
from app.api.v1 import doctors, appointments

api_router = APIRouter()

api_router.include_router(doctors.router, prefix="/doctor", tags=["doctor"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
