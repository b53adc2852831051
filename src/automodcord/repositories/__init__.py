"""Table scoped repositories, one per automod table."""
