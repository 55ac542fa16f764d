"""db/repositories — SQL for each table; callers own the connection."""
