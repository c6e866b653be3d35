"""
Venue records, storage and ranking.

Responsibilities:
- Define the validated venue, detail and request schemas.
- Hold venues in memory with their derived vibe scores.
- Sort, filter and tag venues for the list and map views.
- Provide the TTL cache used by the places layer.
"""
