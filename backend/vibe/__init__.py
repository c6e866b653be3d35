"""
Vibe scoring package.

Responsibilities:
- Hold the named scoring policies (weights, keyword vocabularies, boost).
- Compute the bounded 0-100 vibe score for a venue's raw signals.
- Map scores to display labels and map-marker tiers.
"""
