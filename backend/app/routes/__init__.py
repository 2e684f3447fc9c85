"""
Health Metrics Tracker Backend — API Routes Package
=====================================================

Route Inventory:
    - data_values.py: /api/data-values   (submit, correct, list, aggregate)
    - facilities.py:  /api/facilities    (registry, paged search)
    - indicators.py:  /api/indicators    (registry)
    - health.py:      /health            (service health check)

Routes stay thin: parse the request, call one service method, shape the
response. Errors propagate as app.exceptions and are mapped in main.py.
"""
