"""
Places data layer.

Responsibilities:
- Manage Foursquare Places API configuration and credentials.
- Fetch nearby cafés and single-venue details over HTTP.
- Validate provider payloads and map them into venue records.
- Cache provider results and fall back to cached or seed data on failure.
"""
