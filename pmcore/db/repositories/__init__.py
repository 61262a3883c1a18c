"""
Per-domain repository modules for database access.

`predicates` builds WHERE fragments, `base` holds the generic `RecordStore`,
and `users`, `projects` and `tasks` configure it per entity and add the
entity-specific queries.
"""
