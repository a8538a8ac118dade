"""Okta identity graph ingestion.

Polls the Okta REST API (users, groups, applications, factors, memberships),
throttling requests against the org's rate-limit headers, and maps the
results into entities and relationships stored in PostgreSQL.
"""
