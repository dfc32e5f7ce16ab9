"""Rooms app package.

Rooms are the bookable units published by hosts. Each room owns a single
schedule configuration (operating hours per weekday, blocked dates and
weekdays, cooldown and full-day thresholds) that the availability engine
reads when admitting bookings. Room CRUD is intentionally minimal here.
"""
