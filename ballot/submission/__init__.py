"""
Submission finalizer.

Responsibilities:
- Re-validate the voter's selection and ratings against storage.
- Write one immutable record per selected restaurant.
- Mark the profile complete, verify the write and end the session.
"""
