# room_timetable/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from room_timetable.config import settings
from room_timetable.database import engine, Base
from room_timetable.errors import BookingError, ConflictError, NotFoundError
from room_timetable.routes import users, rooms, bookings, templates

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create the database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Room Timetable Service",
    description="Timetable resolution and booking admission for institutional rooms",
    version="1.0.0"
)

# CORS Middleware (Adjust as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Adjust for specific domains in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Engine rejections -> JSON with a machine-readable reason.
# A lost race renders exactly like any other conflict.
@app.exception_handler(BookingError)
def booking_error_handler(request: Request, exc: BookingError):
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ConflictError):
        status_code = 409
    else:
        status_code = 400
    logger.info("Rejected %s %s: %s (%s)", request.method, request.url.path, exc.reason, exc.detail)
    return JSONResponse(status_code=status_code, content=exc.to_dict())

# Registering Routers
app.include_router(users.router)
app.include_router(rooms.router)
app.include_router(bookings.router)
app.include_router(templates.router)

@app.get("/", tags=["Root"])
def read_root():
    return {"message": "Welcome to the Room Timetable Service"}
