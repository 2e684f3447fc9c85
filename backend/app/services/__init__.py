"""
Health Metrics Tracker Backend — Services Layer
=================================================

What:  Business rules between the routes (HTTP) and the database.

Service Inventory:
    - validation:          pure value and period rules
    - aggregation:         pure total / average / per-region sums
    - FacilityService:     facility registry
    - IndicatorService:    indicator registry with a list cache
    - DataValueService:    submission, correction, listing, aggregation
    - seed_service:        demo data for an empty database

Services raise app.exceptions errors and never deal in status codes; the
handlers in main.py own the HTTP mapping.
"""
