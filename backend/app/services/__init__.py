# Services package init
"""
DoggyClub Backend — Services Layer
====================================

What:  Business logic between routes (HTTP) and the database (persistence).
How:   Stateless service classes, one singleton each. Every method receives
       the request's AsyncSession; services flush, the session dependency
       commits or rolls back.

Service Inventory:
    - UserService: owners and their visibility
    - DogService: dog profiles, ownership-scoped update/delete
    - LocationService: last-known-position upsert and retention cleanup
    - EncounterService: GPS and Bluetooth encounters, history, nearby dogs
    - geo: haversine distance and bounding-box helpers (plain functions)
"""
