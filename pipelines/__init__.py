"""Identity, merge, session and backfill pipelines built on the stormcrew store."""
