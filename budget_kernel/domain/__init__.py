"""Pure functional core: no database access, no wall-clock reads."""
