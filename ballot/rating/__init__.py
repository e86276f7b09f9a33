"""
Rating workflow.

Responsibilities:
- Score each selected restaurant on food, service and ambience (1-5).
- Detect incomplete or corrupt rating state and send the voter back.
- Persist edits by overwriting the voter's whole ratings mapping.
"""
