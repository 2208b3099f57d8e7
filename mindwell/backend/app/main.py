from __future__ import annotations

import json
import logging
import os
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, create_engine, text
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from .history_engine import JournalMetrics, compute_journal_metrics
from .journal_bonus import compute_journal_bonus
from .language_mapping import SUPPORTED_LANGUAGES
from .score_store import (
    DEFAULT_HISTORY_LIMIT,
    ScoreConflictError,
    get_daily_score,
    load_payload,
    read_history,
    write_daily_score,
)
from .wri_engine import WriOutput, compute_wri, normalize_inputs

log = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
REPO_ROOT = Path(__file__).resolve().parents[3]
load_dotenv(REPO_ROOT / ".env")


def resolve_db_path() -> str:
    db_env = (os.getenv("MINDWELL_DB_PATH") or os.getenv("DB_PATH") or "").strip()
    db_path = Path(db_env) if db_env else (REPO_ROOT / "mindwell.db")
    if not db_path.is_absolute():
        db_path = REPO_ROOT / db_path
    return str(db_path)


def env_int(name: str, default: int) -> int:
    value = (os.getenv(name) or "").strip()
    try:
        return int(value) if value else default
    except ValueError:
        log.warning("Ignoring non-integer %s=%r", name, value)
        return default


DB_PATH = resolve_db_path()
DATABASE_URL = f"sqlite:///{DB_PATH}"
SECRET_KEY = os.getenv("MINDWELL_SECRET_KEY", "CHANGE_ME")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = env_int("MINDWELL_TOKEN_MINUTES", 60 * 24)
HISTORY_LIMIT = env_int("MINDWELL_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT)

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    journal_entries = relationship("JournalEntry", back_populates="user")
    profile = relationship("WellnessProfile", uselist=False, back_populates="user")


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    entry_date = Column(Date, default=date.today, nullable=False)

    user = relationship("User", back_populates="journal_entries")


class WellnessProfile(Base):
    __tablename__ = "wellness_profiles"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    answers_json = Column(String, nullable=False, default="{}")
    language = Column(String, nullable=False, default="en")
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="profile")


class DailyScore(Base):
    __tablename__ = "daily_scores"
    __table_args__ = (UniqueConstraint("user_id", "score_date", name="uq_daily_score_user_date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    score_date = Column(Date, nullable=False)
    wri = Column(Float, nullable=False)
    base_wri = Column(Float, nullable=False)
    journal_bonus = Column(Integer, nullable=False, default=0)
    journal_entries_counted = Column(Integer, nullable=False, default=0)
    risk_band = Column(String, nullable=False)
    payload_json = Column(String, nullable=False, default="{}")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str


class RegisterRequest(BaseModel):
    email: str
    password: str


class WriComputeRequest(BaseModel):
    answers: dict
    apply_journal_bonus: bool = False
    language: str = "en"


class HistoryPointResponse(BaseModel):
    date: str
    wri: float


class JournalCreate(BaseModel):
    content: str
    entry_date: Optional[date] = None


class JournalResponse(BaseModel):
    id: int
    content: str
    created_at: datetime
    entry_date: date


class JournalMetricsResponse(BaseModel):
    journal_entries_today: int
    journal_streak: int
    weekly_journal_count: int
    last_journal_date: Optional[str] = None
    journal_bonus: dict


class JournalCreateResponse(BaseModel):
    entry: JournalResponse
    metrics: JournalMetricsResponse
    wri: Optional[float] = None
    risk_band: Optional[str] = None


app = FastAPI(title="MindWell API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        user_id = int(subject)
    except (JWTError, TypeError, ValueError) as exc:
        raise credentials_exception from exc

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise credentials_exception
    return user


def is_dev_mode() -> bool:
    value = os.getenv("MINDWELL_DEV_MODE", "").strip().lower()
    alt = os.getenv("DEV_MODE", "").strip().lower()
    return value in {"1", "true", "yes", "on"} or alt in {"1", "true", "yes", "on"}


def local_today() -> date:
    return datetime.now().date()


@app.get("/health")
def health() -> dict:
    db_status = "ok"
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception:
        log.exception("Database health check failed")
        db_status = "error"
    return {"status": "ok", "version": APP_VERSION, "db": db_status}


@app.get("/meta")
def meta() -> dict:
    payload = {"version": APP_VERSION, "dev_mode": is_dev_mode()}
    if is_dev_mode():
        payload["db_path"] = DB_PATH
    return payload


@app.post("/auth/register", response_model=TokenResponse)
def register_user(payload: RegisterRequest, db: Session = Depends(get_db)) -> TokenResponse:
    existing = db.query(User).filter(User.email == payload.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    if len(payload.password.encode("utf-8")) > 72:
        raise HTTPException(
            status_code=400,
            detail="Password too long (bcrypt limit is 72 bytes). Use a shorter password.",
        )
    user = User(email=payload.email, hashed_password=get_password_hash(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    token = create_access_token({"sub": str(user.id), "email": user.email})
    return TokenResponse(access_token=token, token_type="bearer")


@app.post("/auth/login", response_model=TokenResponse)
def login_user(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
) -> TokenResponse:
    user = db.query(User).filter(User.email == form_data.username).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Invalid email or password")
    token = create_access_token({"sub": str(user.id), "email": user.email})
    return TokenResponse(access_token=token, token_type="bearer")


def fetch_journal_dates(user_id: int, db: Session) -> List[date]:
    rows = db.query(JournalEntry.entry_date).filter(JournalEntry.user_id == user_id).all()
    return [row[0] for row in rows if row[0]]


def build_journal_metrics(user_id: int, db: Session, today: date) -> JournalMetrics:
    return compute_journal_metrics(fetch_journal_dates(user_id, db), today)


def save_profile(user_id: int, answers: dict, language: str, db: Session) -> WellnessProfile:
    profile = db.query(WellnessProfile).filter(WellnessProfile.user_id == user_id).first()
    if profile is None:
        profile = WellnessProfile(user_id=user_id)
        db.add(profile)
    profile.answers_json = json.dumps(answers)
    profile.language = language
    profile.updated_at = datetime.utcnow()
    db.commit()
    return profile


def score_today(
    user_id: int,
    answers: dict,
    language: str,
    apply_journal_bonus: bool,
    db: Session,
    today: date,
) -> DailyScore:
    """Run the engine against today's journal counters and stored history, then persist."""

    def build() -> Tuple[WriOutput, int]:
        metrics = build_journal_metrics(user_id, db, today)
        inputs = normalize_inputs({**answers, **metrics.to_dict()}, language)
        history = read_history(user_id, db, limit=HISTORY_LIMIT, exclude_date=today)
        return compute_wri(inputs, history, apply_journal_bonus), metrics.journal_entries_today

    return write_daily_score(user_id, today, build, db)


def metrics_response(metrics: JournalMetrics) -> JournalMetricsResponse:
    bonus = compute_journal_bonus(
        metrics.journal_entries_today,
        metrics.journal_streak,
        metrics.weekly_journal_count,
    )
    return JournalMetricsResponse(**metrics.to_dict(), journal_bonus=bonus.to_dict())


def journal_response(entry: JournalEntry) -> JournalResponse:
    return JournalResponse(
        id=entry.id,
        content=entry.content,
        created_at=entry.created_at,
        entry_date=entry.entry_date,
    )


@app.post("/wri/compute")
def wri_compute(
    payload: WriComputeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    if payload.language not in SUPPORTED_LANGUAGES:
        raise HTTPException(status_code=400, detail=f"Unsupported language: {payload.language}")
    save_profile(user.id, payload.answers, payload.language, db)
    try:
        row = score_today(
            user.id,
            payload.answers,
            payload.language,
            payload.apply_journal_bonus,
            db,
            local_today(),
        )
    except ScoreConflictError as exc:
        raise HTTPException(status_code=409, detail="Score was updated concurrently, please retry") from exc
    return load_payload(row)


@app.get("/wri/today")
def wri_today(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    row = get_daily_score(user.id, local_today(), db)
    if row is None:
        raise HTTPException(status_code=404, detail="No score recorded today")
    return load_payload(row)


@app.get("/wri/history", response_model=List[HistoryPointResponse])
def wri_history(
    days: int = Query(30, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[HistoryPointResponse]:
    start_date = local_today() - timedelta(days=days - 1)
    points = read_history(user.id, db, limit=days, start_date=start_date)
    return [HistoryPointResponse(date=point.date, wri=point.wri) for point in points]


@app.post("/journal", response_model=JournalCreateResponse)
def create_journal_entry(
    payload: JournalCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> JournalCreateResponse:
    content = payload.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Journal content cannot be empty")
    today = local_today()
    if payload.entry_date and payload.entry_date != today and not is_dev_mode():
        raise HTTPException(status_code=403, detail="entry_date must be today unless dev mode is enabled.")
    entry = JournalEntry(
        user_id=user.id,
        content=content,
        entry_date=payload.entry_date or today,
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    metrics = build_journal_metrics(user.id, db, today)
    response = JournalCreateResponse(entry=journal_response(entry), metrics=metrics_response(metrics))

    profile = db.query(WellnessProfile).filter(WellnessProfile.user_id == user.id).first()
    if profile is None:
        log.info("User %s has no wellness profile yet; journal bonus not scored", user.id)
        return response
    try:
        row = score_today(user.id, json.loads(profile.answers_json or "{}"), profile.language, True, db, today)
    except ScoreConflictError:
        # The entry is kept; the next score write recomputes the bonus from the stored counters.
        log.warning("Journal entry %s stored for user %s but today's score was not updated", entry.id, user.id)
        return response
    response.wri = row.wri
    response.risk_band = row.risk_band
    return response


@app.get("/journal", response_model=List[JournalResponse])
def list_journal_entries(
    days: int = Query(30, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[JournalResponse]:
    start_date = local_today() - timedelta(days=days - 1)
    entries = (
        db.query(JournalEntry)
        .filter(JournalEntry.user_id == user.id, JournalEntry.entry_date >= start_date)
        .order_by(JournalEntry.created_at.desc())
        .limit(200)
        .all()
    )
    return [journal_response(entry) for entry in entries]


@app.get("/journal/metrics", response_model=JournalMetricsResponse)
def journal_metrics(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> JournalMetricsResponse:
    return metrics_response(build_journal_metrics(user.id, db, local_today()))
