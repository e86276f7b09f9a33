from __future__ import annotations

NETWORK_ISSUE_MESSAGE = (
    "We've detected a network issue and some of your progress may not have been saved."
)


class BallotError(Exception):
    """Base class for every error the voting flow raises on purpose."""


class StoreError(BallotError):
    """A backend read or write failed. The message carries the backend's text."""


class SelectionNotReady(BallotError):
    """The saved selection was requested before the candidate catalog loaded."""


class SubmissionError(BallotError):
    """A finalization step failed; the message is shown to the user as-is."""


class RedirectRequired(BallotError):
    """
    An invariant of the flow is violated and the user must go back.

    ``redirect`` is the route of the screen that can fix the problem.
    """

    def __init__(self, redirect: str, message: str = NETWORK_ISSUE_MESSAGE) -> None:
        super().__init__(message)
        self.redirect = redirect
        self.message = message
