# Routes package init
"""
DoggyClub Backend — API Routes Package
========================================

What:  HTTP route handlers that accept requests and return responses.
How:   One module per resource.

Route Inventory:
    - users.py:       POST  /api/users                     (register owner)
                      GET   /api/users/{id}                (get owner)
                      PATCH /api/users/{id}/visibility     (public/private)
                      GET   /api/users/{id}/dogs           (owner's dogs)
    - dogs.py:        POST/GET/PATCH/DELETE /api/dogs[/{id}]
                      GET   /api/dogs/{id}/location        (last known position)
                      GET   /api/dogs/{id}/encounters      (history, paginated)
    - locations.py:   PUT   /api/locations                 (position report)
    - encounters.py:  POST  /api/encounters/detect         (GPS detection)
                      POST  /api/encounters/bluetooth      (beacon sighting)
                      GET   /api/encounters/nearby         (public dogs nearby)
    - health.py:      GET   /health                        (service health check)

Design Principle:
    Routes should be THIN. They extract the request, call one service
    method, and set status codes and headers. Business rules live in
    services, so they can be tested without HTTP.
"""
