"""APISentry scanning modules."""
