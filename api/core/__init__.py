"""
Shared, cross-cutting code for the API.

`core/` holds the long-lived handles every feature uses (Postgres pool,
Elasticsearch client, notification publisher) and a couple of small value
types. Recipe SQL and ranking logic stay in their feature packages
(`recipes/`, `search/`, `trending/`).
"""
