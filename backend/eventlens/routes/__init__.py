# Routes package init
"""
EventLens Backend — API Routes Package
=======================================

Route Inventory:
    - sessions.py:  /api/sessions            AR scan sessions and marker scans
    - events.py:    /api/events              events, and stalls of one event
    - stalls.py:    /api/stalls              single stalls, marker lookup, views
    - activity.py:  /api/activity, /api/users  user activity and favourites
    - health.py:    /health                  service health check

Routes stay thin: parse the request, call a service, return its model.
"""
