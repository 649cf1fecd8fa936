"""
Services Layer

Business logic that:
- Accepts domain inputs (caller identity, raw payloads, DB sessions)
- Returns domain outputs (models, result values)
- Does NOT depend on HTTP request/response objects
"""
