"""
Realtime board app.

This app contains:
- A Channels consumer for `/ws/board/<session_id>/` (alias `/realtime/session/<session_id>/`)
- The in-memory SessionRegistry holding each session's state and subscribers
- Read-only snapshot and code-execution proxy HTTP views
"""
