"""
Pydantic models used by the RizzCoach runtime.

Split into:
- session_models: Session + Message + SessionState
- api_models: HTTP request/response schemas
"""
