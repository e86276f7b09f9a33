from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.sessions import SessionMiddleware

from .auth.dependencies import get_current_user, require_session, require_user
from .auth.events import AuthEvent, auth_events
from .config import DEFAULT_CONFIG
from .errors import RedirectRequired, SelectionNotReady, StoreError, SubmissionError
from .rating.models import DraftOut, RatingIn, RatingScreen, SavedRating, StarRequest
from .rating.stars import AXES, RatingState, render_stars
from .rating.workflow import RatedCandidate, RatingDraft, RatingWorkflow, check_consistency
from .selection.filters import ALL_CITIES
from .selection.models import CandidateList, SelectionOut, ToggleRequest, ToggleResponse
from .selection.workflow import SelectionWorkflow, ToggleResult
from .session.provider import SessionContext, SessionProvider
from .storage import get_backend
from .storage.models import Identity, Rating
from .submission.finalizer import finalize

logging.basicConfig(level=getattr(logging, DEFAULT_CONFIG.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

_DRAFT_KEY = "rating_draft"


class LoginRequest(BaseModel):
    username: str
    password: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.session_provider.start()
    logger.info("Session provider subscribed to auth events")
    yield
    app.state.session_provider.stop()
    logger.info("Session provider unsubscribed")


app = FastAPI(title="Restaurant Ballot API", version="2.0.0", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=DEFAULT_CONFIG.session_secret)

app.state.session_provider = SessionProvider(get_backend, auth_events)


# ── Error mapping ────────────────────────────────────────────────────────


@app.exception_handler(RedirectRequired)
def redirect_required(request: Request, exc: RedirectRequired) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": exc.message, "redirect": exc.redirect})


@app.exception_handler(SelectionNotReady)
def selection_not_ready(request: Request, exc: SelectionNotReady) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(SubmissionError)
def submission_failed(request: Request, exc: SubmissionError) -> JSONResponse:
    logger.error("Submission failed: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(StoreError)
def store_failed(request: Request, exc: StoreError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def _selection_out(workflow: SelectionWorkflow) -> SelectionOut:
    return SelectionOut(
        selected=workflow.selection.items,
        count=workflow.selection.size,
        max_selection=workflow.max_selection,
        can_proceed=workflow.can_proceed(),
    )


def _draft_out(draft: RatingDraft) -> DraftOut:
    return DraftOut(
        draft=draft,
        stars={axis: render_stars(getattr(draft.rating, axis)) for axis in AXES},
    )


def _open_draft(request: Request) -> RatingDraft:
    raw = request.session.get(_DRAFT_KEY)
    if not raw:
        raise HTTPException(status_code=404, detail="No rating is being edited")
    return RatingDraft.model_validate(raw)


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/process")
def process_description() -> dict:
    count = DEFAULT_CONFIG.max_selection
    return {
        "title": f"Give us your {count} favourite restaurants",
        "steps": [
            "The top 100 restaurants have been chosen based on ratings by 80 jury members "
            f"across 10 regions of India. Please pick your {count} favourites from the list.",
            f"Once your list of {count} is ready, proceed to the final stage to rate these "
            "for Food, Service and Ambience.",
        ],
        "next": "/selection",
    }


@app.get("/thank-you")
def thank_you() -> dict[str, str]:
    return {"message": "Thank you! Your ratings have been submitted."}


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/login")
def login(body: LoginRequest, request: Request) -> dict:
    identity = get_backend().sign_in(body.username, body.password)
    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session.clear()
    request.session["user"] = identity.model_dump()
    auth_events.emit(AuthEvent.SIGNED_IN, identity)

    ctx = request.app.state.session_provider.current(identity)
    completed = bool(ctx.profile and ctx.profile.is_completed)
    return {
        "status": "ok",
        "user": identity.model_dump(),
        "profile": ctx.profile.model_dump() if ctx.profile else None,
        "next": "/thank-you" if completed else "/process",
    }


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    identity = get_current_user(request)
    if identity is not None:
        try:
            get_backend().sign_out(identity)
        except StoreError as exc:
            logger.warning("Backend sign-out failed for %s: %s", identity.id, exc)
        auth_events.emit(AuthEvent.SIGNED_OUT, identity)
    request.session.clear()
    return {"status": "logged_out"}


@app.post("/auth/refresh")
def refresh(request: Request, identity: Identity = Depends(require_user)) -> dict:
    auth_events.emit(AuthEvent.TOKEN_REFRESHED, identity)
    ctx = request.app.state.session_provider.current(identity)
    return {
        "user": identity.model_dump(),
        "profile": ctx.profile.model_dump() if ctx.profile else None,
    }


@app.get("/auth/me")
def auth_me(ctx: SessionContext = Depends(require_session)) -> dict:
    return {
        "user": ctx.identity.model_dump() if ctx.identity else None,
        "profile": ctx.profile.model_dump() if ctx.profile else None,
    }


# ── Selection endpoints ──────────────────────────────────────────────────


@app.get("/metadata")
def metadata(identity: Identity = Depends(require_user)) -> dict:
    workflow = SelectionWorkflow(get_backend(), identity)
    workflow.load_candidates()
    return {
        "cities": [ALL_CITIES, *workflow.cities()],
        "max_selection": workflow.max_selection,
    }


@app.get("/candidates", response_model=CandidateList)
def candidates(
    search: str = "",
    city: str = ALL_CITIES,
    identity: Identity = Depends(require_user),
) -> CandidateList:
    workflow = SelectionWorkflow(get_backend(), identity)
    workflow.load_candidates()
    matches = workflow.search(search, city)
    return CandidateList(candidates=matches, total=len(matches))


@app.get("/selection", response_model=SelectionOut)
def selection(identity: Identity = Depends(require_user)) -> SelectionOut:
    workflow = SelectionWorkflow(get_backend(), identity).open()
    return _selection_out(workflow)


@app.post("/selection/toggle", response_model=ToggleResponse)
def toggle_selection(
    body: ToggleRequest,
    identity: Identity = Depends(require_user),
) -> ToggleResponse:
    workflow = SelectionWorkflow(get_backend(), identity).open()
    try:
        result = workflow.toggle(body.candidate_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    notice = None
    if result is ToggleResult.COMPLETED:
        notice = f"You have selected {workflow.max_selection} restaurants. You can now proceed."
    elif result is ToggleResult.AT_CAPACITY:
        notice = f"You can only select {workflow.max_selection} restaurants."
    return ToggleResponse(result=result, selection=_selection_out(workflow), notice=notice)


@app.delete("/selection/{candidate_id}", response_model=SelectionOut)
def remove_selection(candidate_id: str, identity: Identity = Depends(require_user)) -> SelectionOut:
    workflow = SelectionWorkflow(get_backend(), identity).open()
    workflow.remove(candidate_id)
    return _selection_out(workflow)


@app.post("/selection/proceed")
def proceed(identity: Identity = Depends(require_user)) -> dict[str, str]:
    workflow = SelectionWorkflow(get_backend(), identity).open()
    return {"next": workflow.proceed()}


# ── Rating endpoints ─────────────────────────────────────────────────────


def _rating_screen(workflow: RatingWorkflow, entries: list[RatedCandidate]) -> RatingScreen:
    return RatingScreen(
        entries=entries,
        rated=sum(1 for e in entries if e.state is RatingState.COMPLETE),
        max_selection=workflow.max_selection,
        ready_to_submit=check_consistency(workflow.selected, workflow.ratings, workflow.max_selection) is None,
    )


@app.get("/rating", response_model=RatingScreen)
def rating_screen(identity: Identity = Depends(require_user)) -> RatingScreen:
    workflow = RatingWorkflow(get_backend(), identity)
    return _rating_screen(workflow, workflow.enter())


@app.get("/final-ratings", response_model=RatingScreen)
def final_ratings(identity: Identity = Depends(require_user)) -> RatingScreen:
    workflow = RatingWorkflow(get_backend(), identity)
    return _rating_screen(workflow, workflow.review())


@app.post("/rating/{candidate_id}/edit", response_model=DraftOut)
def edit_rating(
    candidate_id: str,
    request: Request,
    identity: Identity = Depends(require_user),
) -> DraftOut:
    workflow = RatingWorkflow(get_backend(), identity)
    try:
        draft = workflow.edit_rating(candidate_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    request.session[_DRAFT_KEY] = draft.model_dump()
    return _draft_out(draft)


@app.post("/rating/draft/stars", response_model=DraftOut)
def click_star(
    body: StarRequest,
    request: Request,
    identity: Identity = Depends(require_user),
) -> DraftOut:
    try:
        draft = RatingWorkflow.set_stars(_open_draft(request), body.axis, body.stars)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    request.session[_DRAFT_KEY] = draft.model_dump()
    return _draft_out(draft)


@app.post("/rating/draft/save", response_model=SavedRating)
def save_draft(request: Request, identity: Identity = Depends(require_user)) -> SavedRating:
    draft = _open_draft(request)
    workflow = RatingWorkflow(get_backend(), identity)
    try:
        updated = workflow.save_rating(draft)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    request.session.pop(_DRAFT_KEY, None)
    return SavedRating(candidate_id=draft.candidate.id, rating=draft.rating, rated=len(updated))


@app.delete("/rating/draft")
def cancel_draft(request: Request, identity: Identity = Depends(require_user)) -> dict[str, str]:
    request.session.pop(_DRAFT_KEY, None)
    return {"status": "cancelled"}


@app.put("/rating/{candidate_id}", response_model=SavedRating)
def put_rating(
    candidate_id: str,
    body: RatingIn,
    identity: Identity = Depends(require_user),
) -> SavedRating:
    workflow = RatingWorkflow(get_backend(), identity)
    try:
        draft = workflow.edit_rating(candidate_id)
        draft = RatingDraft(candidate=draft.candidate, rating=Rating(**body.model_dump()))
        updated = workflow.save_rating(draft)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SavedRating(candidate_id=candidate_id, rating=draft.rating, rated=len(updated))


# ── Submission ───────────────────────────────────────────────────────────


@app.post("/final-ratings/submit")
def submit(request: Request, identity: Identity = Depends(require_user)) -> dict:
    records = finalize(get_backend(), identity, auth_events)
    request.session.clear()
    return {"status": "submitted", "submitted": len(records), "redirect": "/thank-you"}
