"""Messaging bounded context.

Owns the inter-application event outbox: write-ahead tracking of events
before they reach the broker, batch replay of undelivered events,
retention, and delivery health reporting.
"""
