import os
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from errors import ReportError
from grade_scale import router as grade_scale_router
from report_cards import router as report_cards_router
from schemas import ErrorResponse

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Report Card API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(report_cards_router)
app.include_router(grade_scale_router)


# ----------------------------- Errors -----------------------------
def error_response(status_code: int, message: str, detail=None) -> JSONResponse:
    body = ErrorResponse(message=message, detail=detail).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@app.exception_handler(ReportError)
async def report_error_handler(request: Request, exc: ReportError):
    return error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(422, "Validation failed", detail=exc.errors())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


# ----------------------------- Health -----------------------------
@app.get("/")
def root():
    return {"message": "Report Card API"}


@app.get("/health")
def health():
    return {"status": "OK", "message": "Report Card API is running"}


@app.get("/test")
def test_database():
    resp = {
        "backend": "✅ Running",
        "database": "❌ Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            resp["database"] = "✅ Connected"
            resp["collections"] = database.db.list_collection_names()
    except Exception as e:
        resp["error"] = str(e)
    return resp


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
