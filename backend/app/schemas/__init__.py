"""
DoggyClub Backend — Pydantic Request/Response Schemas
=======================================================

What:  The API contract between clients and the backend.
Why:   Kept separate from the ORM models so the wire format can evolve
       independently of the table layout (e.g. the encounter dedup key
       columns are never exposed).

Modules:
    common.py     ← error and health envelopes
    user.py       ← user create/read/visibility
    dog.py        ← dog profile create/read/update
    encounter.py  ← location reports, detection, history, nearby
"""
