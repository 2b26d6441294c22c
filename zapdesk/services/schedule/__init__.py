"""Scheduling helpers."""

from zapdesk.services.schedule.business_hours import BusinessHoursGate, is_open

__all__ = ["BusinessHoursGate", "is_open"]
