import logging
import os
from typing import List, Optional

import duckdb
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StrictInt

from analysis.blunder import BlunderAnalyzer
from analysis.parliament import ParliamentVisualizer
from analysis.swing_state import DEFAULT_PARLIAMENTS, SwingStateClassifier
from data.database import ElectionDatabase, get_connection_manager
from data.errors import ElectionDataError, InvalidInput, StorageFailure
from data.serialization import convert_numpy_types
from polling.candidates import CandidateDirectory
from polling.integrity import VoteIntegrityGuard
from polling.polls import PollRepository
from web.client_ip import get_client_ip

logger = logging.getLogger(__name__)

DATABASE_PATH_ENV = "ELECTION_DB_PATH"
SWING_STATE_PARLIAMENTS_ENV = "SWING_STATE_PARLIAMENTS"
BLUNDER_DEFAULT_PARLIAMENT_ENV = "BLUNDER_DEFAULT_PARLIAMENT"
BLUNDER_DEFAULT_PARLIAMENT = 9

app = FastAPI(
    title="Election Lens",
    description="Election analytics and poll integrity API",
)

# Global database path - the handle itself is opened lazily and reused
db_path = None


@app.on_event("startup")
async def startup_event():
    """Initialize the application."""
    logger.info("Starting Election Lens API")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up on shutdown."""
    logger.info("Shutting down Election Lens API")
    get_connection_manager().close_all()


def get_database() -> ElectionDatabase:
    """
    Get a database unit of work for one request.

    Uses the path set with set_database_path, falling back to the
    ELECTION_DB_PATH environment variable.
    """
    path = db_path or os.environ.get(DATABASE_PATH_ENV)
    if not path:
        raise StorageFailure("Database not configured")
    return ElectionDatabase(path)


def set_database_path(path: str):
    """Set the database path for the application."""
    global db_path
    db_path = path
    os.environ[DATABASE_PATH_ENV] = path
    logger.info(f"Database path set to: {path}")

    # Test connection to ensure database is accessible
    try:
        with ElectionDatabase(path) as test_db:
            test_db.table_exists("polls")
        logger.info("Database connection test successful")
    except Exception as e:
        logger.error(f"Database connection test failed: {e}")
        raise


def get_swing_state_parliaments() -> List[int]:
    """Target terms for swing-state classification."""
    configured = os.environ.get(SWING_STATE_PARLIAMENTS_ENV)
    if not configured:
        return list(DEFAULT_PARLIAMENTS)
    try:
        return [int(p) for p in configured.split(",") if p.strip()]
    except ValueError:
        logger.error(f"Invalid {SWING_STATE_PARLIAMENTS_ENV}: {configured}")
        raise StorageFailure("Invalid swing state configuration") from None


def get_default_parliament() -> int:
    configured = os.environ.get(BLUNDER_DEFAULT_PARLIAMENT_ENV)
    if not configured:
        return BLUNDER_DEFAULT_PARLIAMENT
    try:
        return int(configured)
    except ValueError:
        logger.error(f"Invalid {BLUNDER_DEFAULT_PARLIAMENT_ENV}: {configured}")
        raise StorageFailure("Invalid blunder configuration") from None


def _parse_int(value: Optional[str], message: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(message) from None


# Error responses
@app.exception_handler(ElectionDataError)
async def election_data_error_handler(request: Request, exc: ElectionDataError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted(
        {str(error["loc"][-1]) for error in exc.errors() if error.get("loc")}
    )
    message = "Invalid request"
    if fields:
        message = f"Invalid request: {', '.join(fields)}"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(duckdb.Error)
async def storage_error_handler(request: Request, exc: duckdb.Error):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Storage failure"})


class PollVotePayload(BaseModel):
    pollId: str
    questionIndex: StrictInt
    optionKey: str
    fingerprint: str


class PopularityVotePayload(BaseModel):
    fp: Optional[str] = None
    candidate_name: Optional[str] = None
    constituency_id: Optional[str] = None


# API Routes
@app.post("/api/poll/vote")
async def submit_poll_vote(payload: PollVotePayload, request: Request):
    """Record one vote for a poll question."""
    ip = get_client_ip(request.headers, request.client.host if request.client else None)
    with get_database() as database:
        poll = VoteIntegrityGuard(database).cast_poll_vote(
            poll_id=payload.pollId,
            question_index=payload.questionIndex,
            option_key=payload.optionKey,
            ip=ip,
            fingerprint=payload.fingerprint,
        )
    return {"success": True, "poll": poll.to_dict()}


@app.get("/api/poll/{slug}")
async def get_poll(slug: str):
    """Get a poll with its current vote counts."""
    with get_database() as database:
        poll = PollRepository(database).get_by_slug(slug)
    return poll.to_dict()


@app.post("/api/popularity-vote")
async def submit_popularity_vote(payload: PopularityVotePayload):
    """Record one popularity vote for a 2026 candidate."""
    with get_database() as database:
        popularity_vote = VoteIntegrityGuard(database).cast_popularity_vote(
            fingerprint=payload.fp,
            candidate_name=payload.candidate_name,
            constituency_id=payload.constituency_id,
        )
    return {
        "success": True,
        "message": "Vote recorded successfully",
        "popularity_vote": popularity_vote,
    }


@app.get("/api/popularity-vote")
async def check_popularity_vote(
    fp: Optional[str] = None, candidate_name: Optional[str] = None
):
    """Check whether a device already voted for a candidate."""
    with get_database() as database:
        has_voted = VoteIntegrityGuard(database).has_popularity_vote(fp, candidate_name)
    return {"hasVoted": has_voted}


@app.get("/api/swing-state")
async def get_swing_states():
    """Stability classification of every constituency."""
    parliaments = get_swing_state_parliaments()
    with get_database() as database:
        summary = SwingStateClassifier(database, parliaments).get_summary()
    return convert_numpy_types(summary)


@app.get("/api/blunder")
async def get_blunder(parliament: Optional[str] = None):
    """Runner-up party's narrowest losses for a term."""
    if parliament is None:
        parliament_number = get_default_parliament()
    else:
        parliament_number = _parse_int(parliament, "Invalid parliament number")
    with get_database() as database:
        result = BlunderAnalyzer(database).analyze(parliament_number)
    return convert_numpy_types(result.to_dict())


@app.get("/api/parliament-visualization")
async def get_parliament_visualization(year: Optional[str] = None):
    """Seat map for an election year."""
    if not year:
        raise InvalidInput("Election year is required")
    election_year = _parse_int(year, f"No data available for election year {year}")
    with get_database() as database:
        seat_map = ParliamentVisualizer(database).visualization(election_year)
    return convert_numpy_types(seat_map)


@app.get("/api/constituency-results")
async def get_constituency_results(parliament: Optional[str] = None):
    """Seat rows for one parliament, ordered by constituency number."""
    if not parliament:
        raise InvalidInput("Parliament number is required")
    parliament_number = _parse_int(parliament, "Invalid parliament number")
    with get_database() as database:
        rows = ParliamentVisualizer(database).constituency_results(parliament_number)
    return convert_numpy_types(rows)


@app.get("/api/candidate2026")
async def get_candidates_2026(
    constituency: Optional[str] = None,
    party: Optional[str] = None,
    division: Optional[str] = None,
    district: Optional[str] = None,
):
    """2026 constituencies with their candidate lists and popularity votes."""
    with get_database() as database:
        constituencies = CandidateDirectory(database).list_constituencies(
            constituency=constituency,
            party=party,
            division=division,
            district=district,
        )
    return convert_numpy_types(constituencies)
