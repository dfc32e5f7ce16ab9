"""Payments app package.

Holds the transaction ledger (one row per provider-side transaction id),
the reconciliation service that applies settled payments to bookings
exactly once, and the protocol adapters for the two payment switches:
Payme (JSON-RPC merchant API) and Click (signed prepare/complete webhooks).
"""
