"""Topic insight computation and the background worker pool that runs it."""
