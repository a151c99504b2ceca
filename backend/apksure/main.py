import io
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Header, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session as DBSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config, db, session_store
from .analysis_service import AnalysisServiceError, fetch_result, submit_apk
from .security import authenticate, bearer_token, require_session


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.get_engine()
    yield


app = FastAPI(title="APKSure", lifespan=lifespan)

# CORS so the browser frontend can call this API
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SigninRequest(BaseModel):
    email: str
    password: str


@app.exception_handler(StarletteHTTPException)
async def http_error(request, exc: StarletteHTTPException):
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error(request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    message = f"Invalid request: {where} {first.get('msg', '')}".strip()
    return JSONResponse({"message": message, "errors": jsonable_encoder(errors)}, status_code=422)


def _server_error(e: Exception) -> JSONResponse:
    # raw exception text only leaves the server in debug mode
    error = str(e) if config.DEBUG else "Internal server error"
    return JSONResponse({"message": "Server error", "error": error}, status_code=500)


@app.post("/api/signin")
def signin(body: SigninRequest, database: DBSession = Depends(db.get_db)):
    try:
        user = authenticate(database, body.email, body.password)
        if user is None:
            logging.warning("Sign-in rejected")
            return JSONResponse({"message": "Invalid credentials."}, status_code=401)

        session = session_store.issue(user.email)
        logging.info(f"Sign-in successful for {user.email}")
        return {
            "message": "Sign-in successful!",
            "token": session.token,
            "expires_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(session.expires_at)),
        }

    except Exception as e:
        logging.exception("Sign-in failed with an unexpected error")
        return _server_error(e)


@app.post("/api/signout")
def signout(authorization: Optional[str] = Header(None)):
    token = bearer_token(authorization)
    session_store.revoke(token)
    return {"message": "Signed out."}


def _too_large() -> JSONResponse:
    return JSONResponse(
        {"message": f"APK exceeds the {config.MAX_UPLOAD_MB} MB upload limit."},
        status_code=413,
    )


@app.post("/api/upload")
async def upload(apk: UploadFile = File(...), session: session_store.Session = Depends(require_session)):
    filename = apk.filename or ""
    if not filename.lower().endswith(config.ALLOWED_EXTENSIONS):
        return JSONResponse({"message": "Uploaded file is not an APK."}, status_code=400)

    size = getattr(apk, "size", None)
    if size is not None and size > config.MAX_UPLOAD_BYTES:
        return _too_large()

    # never hold more than the limit plus one byte in memory
    contents = await apk.read(config.MAX_UPLOAD_BYTES + 1)
    if len(contents) > config.MAX_UPLOAD_BYTES:
        return _too_large()

    logging.info(f"{session.email} uploading {filename} ({len(contents)} bytes)")
    try:
        jobid = await run_in_threadpool(submit_apk, filename, io.BytesIO(contents))
    except AnalysisServiceError as e:
        return JSONResponse({"message": str(e)}, status_code=502)

    return {"jobid": jobid}


@app.get("/api/result/{jobid}")
def result(jobid: str, session: session_store.Session = Depends(require_session)):
    try:
        return fetch_result(jobid)
    except AnalysisServiceError as e:
        return JSONResponse({"message": str(e)}, status_code=502)


@app.get("/health")
def health():
    return {"status": "ok"}
