import asyncio
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
import logging
import os
from threading import Lock
from time import perf_counter

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.categories import CATEGORIES, CATEGORY_NAMES
from app.models import AnalysisResult, AnalyzeRequest, CategoryInfo, DisplayStatistics
from app.scoring import analyze
from app.service import AnalysisTimeoutError, analyze_content
from app.statistics import get_statistics

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
logger = logging.getLogger(__name__)

ANALYSIS_DELAY_SECONDS = float(os.getenv("ANALYSIS_DELAY_SECONDS", "0"))
ANALYSIS_TIMEOUT_SECONDS = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "0"))
HEALTH_PROBE_INTERVAL_SECONDS = int(os.getenv("HEALTH_PROBE_INTERVAL_SECONDS", "300"))
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "0").lower() in {"1", "true", "yes", "on"}
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "120"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
RATE_LIMIT_PATH_PREFIXES = tuple(
    p.strip() for p in os.getenv("RATE_LIMIT_PATH_PREFIXES", "/analyze").split(",") if p.strip()
)
RATE_LIMIT_TRUST_FORWARDED = os.getenv("RATE_LIMIT_TRUST_FORWARDED", "0").lower() in {"1", "true", "yes", "on"}

# used by the health probe; must trip at least one category
PROBE_TEXT = "click here, buy now, act fast"

SERVICE_NAME = "content scoring API"
SERVICE_VERSION = "1.0.0"


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())


configure_logging()


class HealthState:
    def __init__(self, probe_interval_seconds: int = 300, max_errors: int = 200) -> None:
        self.probe_interval_seconds = probe_interval_seconds
        self.max_errors = max_errors
        self.started_at = datetime.now(timezone.utc)
        self.last_probe_at: datetime | None = None
        self.last_probe_success: bool | None = None
        self.last_probe_error: str | None = None
        self.last_response_ms: float | None = None
        self.total_probes = 0
        self.failed_probes = 0
        self.analyses_served = 0
        self.errors: list[dict[str, str]] = []
        self._lock = Lock()

    def record_probe(self, success: bool, response_ms: float, error: str | None = None) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            self.last_probe_at = now
            self.last_probe_success = success
            self.last_response_ms = round(response_ms, 2)
            self.last_probe_error = error
            self.total_probes += 1
            if not success:
                self.failed_probes += 1

    def record_analysis(self) -> None:
        with self._lock:
            self.analyses_served += 1

    def record_error(self, path: str, error: str) -> None:
        entry = {
            "time": datetime.now(timezone.utc).isoformat(),
            "path": path,
            "error": error,
        }
        with self._lock:
            self.errors.append(entry)
            if len(self.errors) > self.max_errors:
                self.errors = self.errors[-self.max_errors :]

    def snapshot(self) -> dict:
        now = datetime.now(timezone.utc)
        with self._lock:
            uptime_seconds = max(0.0, (now - self.started_at).total_seconds())

            availability = 100.0
            if self.total_probes > 0:
                availability = (1.0 - (self.failed_probes / self.total_probes)) * 100.0

            return {
                "started_at": self.started_at.isoformat(),
                "now": now.isoformat(),
                "probe_interval_seconds": self.probe_interval_seconds,
                "uptime_seconds": round(uptime_seconds, 2),
                "total_probes": self.total_probes,
                "failed_probes": self.failed_probes,
                "availability_percent": round(availability, 4),
                "last_probe_at": self.last_probe_at.isoformat() if self.last_probe_at else None,
                "last_probe_success": self.last_probe_success,
                "last_probe_error": self.last_probe_error,
                "last_response_ms": self.last_response_ms,
                "analyses_served": self.analyses_served,
                "reported_error_count": len(self.errors),
                "recent_errors": list(self.errors[-50:]),
            }


class RateLimiter:
    """Fixed-window request counter keyed by client and path."""

    def __init__(
        self,
        enabled: bool,
        max_requests: int,
        window_seconds: int,
        path_prefixes: tuple[str, ...],
        trust_forwarded: bool = False,
    ) -> None:
        self.enabled = enabled
        self.max_requests = max(1, max_requests)
        self.window_seconds = max(1, window_seconds)
        self.path_prefixes = path_prefixes
        self.trust_forwarded = trust_forwarded
        self._lock = Lock()
        self._windows: dict[str, tuple[float, int]] = {}

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)

    def should_limit_path(self, path: str) -> bool:
        return bool(self.path_prefixes) and path.startswith(self.path_prefixes)

    def client_key(self, request: Request) -> str:
        client = request.client.host if request.client else "unknown"
        if self.trust_forwarded:
            # only meaningful behind a proxy that overwrites the header
            forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
            client = forwarded or client
        return f"{client}:{request.url.path}"

    def _evict_expired(self, now_ts: float) -> None:
        expired = [k for k, (started, _) in self._windows.items() if now_ts - started >= self.window_seconds]
        for k in expired:
            del self._windows[k]

    def check_and_consume(self, key: str, now_ts: float) -> tuple[bool, float]:
        with self._lock:
            self._evict_expired(now_ts)
            started, used = self._windows.get(key, (now_ts, 0))
            if used >= self.max_requests:
                return False, max(1.0, self.window_seconds - (now_ts - started))
            self._windows[key] = (started, used + 1)
            return True, 0.0


def get_health_state() -> HealthState:
    state = getattr(app.state, "health_state", None)
    if state is None:
        state = HealthState(probe_interval_seconds=HEALTH_PROBE_INTERVAL_SECONDS)
        app.state.health_state = state
    return state


def _now_ts() -> float:
    return datetime.now(timezone.utc).timestamp()


def check_engine(text: str = PROBE_TEXT) -> None:
    if not CATEGORIES:
        raise RuntimeError("no categories loaded")
    result = analyze(text)
    if len(result.categories) != len(CATEGORIES):
        raise RuntimeError(f"expected {len(CATEGORIES)} verdicts, got {len(result.categories)}")
    if result.overall_severity == "safe":
        raise RuntimeError(f"probe text scored safe (overall={result.overall_score:.1f})")


def run_probe(health_state: HealthState) -> bool:
    start = perf_counter()
    err: str | None = None
    try:
        check_engine(PROBE_TEXT)
    except Exception as exc:
        err = str(exc)
        logger.warning("Health probe failed: %s", exc)
    duration_ms = (perf_counter() - start) * 1000.0
    health_state.record_probe(success=err is None, response_ms=duration_ms, error=err)
    return err is None


async def _run_probe_loop(health_state: HealthState) -> None:
    while True:
        await asyncio.sleep(health_state.probe_interval_seconds)
        run_probe(health_state)


@asynccontextmanager
async def lifespan(app: FastAPI):
    health_state = get_health_state()
    run_probe(health_state)
    probe_task = asyncio.create_task(_run_probe_loop(health_state))
    logger.info("%s %s started with %d categories", SERVICE_NAME, SERVICE_VERSION, len(CATEGORIES))
    try:
        yield
    finally:
        probe_task.cancel()
        with suppress(asyncio.CancelledError):
            await probe_task


app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)
rate_limiter = RateLimiter(
    enabled=RATE_LIMIT_ENABLED,
    max_requests=RATE_LIMIT_MAX_REQUESTS,
    window_seconds=RATE_LIMIT_WINDOW_SECONDS,
    path_prefixes=RATE_LIMIT_PATH_PREFIXES,
    trust_forwarded=RATE_LIMIT_TRUST_FORWARDED,
)


@app.middleware("http")
async def enforce_rate_limit(request: Request, call_next):
    if not rate_limiter.enabled or not rate_limiter.should_limit_path(request.url.path):
        return await call_next(request)

    allowed, retry_after = rate_limiter.check_and_consume(rate_limiter.client_key(request), _now_ts())
    if not allowed:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "rate limit exceeded"},
            headers={"Retry-After": str(int(retry_after))},
        )
    return await call_next(request)


@app.middleware("http")
async def report_errors(request: Request, call_next):
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            get_health_state().record_error(request.url.path, f"http_{response.status_code}")
        return response
    except Exception as exc:
        logger.exception("Unhandled error on %s", request.url.path)
        get_health_state().record_error(request.url.path, str(exc))
        raise


@app.get("/")
def index() -> dict:
    return {"name": SERVICE_NAME, "version": SERVICE_VERSION, "categories": list(CATEGORY_NAMES)}


@app.get("/health/status")
def health_status() -> dict:
    return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}


@app.get("/health/metrics")
def health_metrics() -> dict:
    return get_health_state().snapshot()


@app.get("/categories", response_model=list[CategoryInfo])
def list_categories() -> list[CategoryInfo]:
    return [
        CategoryInfo(name=c.name, description=c.description, keywords=list(c.keywords))
        for c in CATEGORIES
    ]


@app.get("/statistics", response_model=DisplayStatistics)
def statistics() -> DisplayStatistics:
    return get_statistics()


@app.post("/analyze", response_model=AnalysisResult)
async def analyze_text(payload: AnalyzeRequest) -> AnalysisResult:
    timeout = ANALYSIS_TIMEOUT_SECONDS if ANALYSIS_TIMEOUT_SECONDS > 0 else None
    try:
        result = await analyze_content(
            payload.text,
            delay_seconds=ANALYSIS_DELAY_SECONDS,
            timeout_seconds=timeout,
        )
    except AnalysisTimeoutError as exc:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
    get_health_state().record_analysis()
    return result
