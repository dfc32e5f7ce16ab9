"""Bookings app package.

This app owns the booking lifecycle: the pure slot availability engine and
pricing rules in ``domain/``, the state machine on the ``Booking`` model,
and the application services that admit new requests under a per-room
lock, drive host/client transitions and sweep expired pending requests.
"""
