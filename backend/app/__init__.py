"""
DoggyClub Backend — Application Package
=========================================

What: Backend for a social network of dog owners whose core feature is
      noticing when two dogs have met: by GPS proximity or by a Bluetooth
      beacon sighting.

Layers:

    ┌─────────────────────────────────────┐
    │  Routes (FastAPI routers)           │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Services                           │  ← dedup, freshness, radius rules
    ├─────────────────────────────────────┤
    │  Models & Schemas                   │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │  Database                           │  ← async sessions, one per request
    └─────────────────────────────────────┘

    app.maintenance is a second entry point beside the HTTP app: the
    scheduled location retention job.
"""

__version__ = "0.1.0"
