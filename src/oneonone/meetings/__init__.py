"""One-on-one meetings -- schemas, models, repository and service.

Meetings are created ad hoc by reporters or materialized from recurring
schedules, and move through PROPOSED/SCHEDULED to COMPLETED or CANCELLED.
"""
