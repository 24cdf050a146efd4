"""
Agents used by the RizzCoach runtime.

ConversationAgent:

- receives a session id + a user send (text and/or screenshot)
- establishes the session's profile or asks for reply advice
- folds the result (or an error message) back into the SessionStore
"""
