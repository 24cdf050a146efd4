"""
Runtime package for the RizzCoach local server.

This package contains:
- API layer (FastAPI server + routes)
- Agents (conversation / decision logic)
- Stores (sessions, event log)
- Models (Pydantic models for requests and sessions)
"""
