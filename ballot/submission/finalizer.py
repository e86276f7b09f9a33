from __future__ import annotations

import logging

from ..auth.events import AuthEvent, AuthEventBus
from ..config import DEFAULT_CONFIG
from ..errors import RedirectRequired, StoreError, SubmissionError
from ..rating.workflow import check_consistency
from ..storage.base import BallotBackend
from ..storage.models import Identity, SubmissionRecord

logger = logging.getLogger(__name__)

SELECTION_INCOMPLETE = "You must select {count} restaurants before submitting."
RATINGS_INCOMPLETE = "Please rate all restaurants with a score from 1 to 5 before submitting."
ALREADY_SUBMITTED = "Your ratings have already been submitted."
PARTIAL_SUBMISSION = "Stored ratings do not match your selection. Please contact support."


def finalize(
    backend: BallotBackend,
    identity: Identity,
    events: AuthEventBus,
    max_selection: int = DEFAULT_CONFIG.max_selection,
) -> list[SubmissionRecord]:
    """
    Turn the voter's saved ratings into final submission records.

    Steps run in order and each assumes the previous one succeeded:
    re-read, re-validate, insert, mark complete, verify, sign out. A retry
    after a failure past the insert reuses the stored records instead of
    writing them twice. A failed backend call aborts with
    ``SubmissionError``; failed validation raises ``RedirectRequired``
    before anything is written.
    """
    try:
        profile = backend.fetch_profile(identity.id)
    except StoreError as exc:
        raise SubmissionError(f"Failed to fetch profile: {exc}") from exc
    if profile.is_completed:
        raise RedirectRequired("/thank-you", ALREADY_SUBMITTED)

    # 1. latest state, not whatever the client last saw
    try:
        row = backend.fetch_selection_row(identity.id)
    except StoreError as exc:
        raise SubmissionError(f"Failed to fetch latest ratings: {exc}") from exc
    selected = row.selected_national_restaurants
    ratings = row.restaurant_ratings

    # 2. validate
    redirect = check_consistency(selected, ratings, max_selection)
    if redirect == "/selection":
        raise RedirectRequired(redirect, SELECTION_INCOMPLETE.format(count=max_selection))
    if redirect is not None:
        raise RedirectRequired(redirect, RATINGS_INCOMPLETE)

    records = [
        SubmissionRecord(
            user_id=identity.id,
            restaurant_id=candidate.id,
            restaurant_name=candidate.name,
            food_rating=ratings[candidate.id].food,
            service_rating=ratings[candidate.id].service,
            ambience_rating=ratings[candidate.id].ambience,
            is_complete=True,
        )
        for candidate in selected
    ]

    # 3. insert, unless a failed earlier attempt already wrote this exact set
    try:
        existing = backend.list_submissions(identity.id)
    except StoreError as exc:
        raise SubmissionError(f"Failed to check earlier submissions: {exc}") from exc
    expected = {candidate.id for candidate in selected}
    if not existing:
        try:
            backend.insert_submissions(records)
        except StoreError as exc:
            raise SubmissionError(f"Error submitting ratings: {exc}") from exc
    elif len(existing) == len(expected) and {r.restaurant_id for r in existing} == expected:
        logger.info("Reusing %d submission records already stored for %s", len(existing), identity.id)
    else:
        raise SubmissionError(PARTIAL_SUBMISSION)

    # 4. mark complete
    try:
        backend.mark_completed(identity.id)
    except StoreError as exc:
        raise SubmissionError(f"Error updating completion status: {exc}") from exc
    events.emit(AuthEvent.USER_UPDATED, identity)

    # 5. verify
    try:
        saved = backend.list_submissions(identity.id)
    except StoreError as exc:
        raise SubmissionError(f"Verification query failed: {exc}") from exc
    if len(saved) != max_selection:
        raise SubmissionError("Verification failed: not all ratings were saved.")

    # 6. end the session
    try:
        backend.sign_out(identity)
    except StoreError as exc:
        raise SubmissionError(f"Error signing out: {exc}") from exc
    events.emit(AuthEvent.SIGNED_OUT, identity)

    logger.info("Submitted %d ratings for user %s", len(records), identity.id)
    return records
