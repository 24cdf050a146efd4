"""
Storage abstractions for the RizzCoach runtime.

Includes:
- SessionStore: in-memory conversation sessions (the only writer of session state)
- LogStore: bounded event log forwarded to `logging`
"""
