"""
Finals services layer

Bracket engine services that:
- Accept domain inputs (IDs, sessions, seed lists)
- Return domain outputs (models, dataclasses)
- Do NOT depend on HTTP request/response objects
- Raise finals.errors exceptions; routes decide how to present them
"""
