"""Recurring one-on-one schedules.

Provides the recurrence rule, schedule persistence, the lifecycle service,
and the periodic job that materializes due meetings and sends reminders.
"""
