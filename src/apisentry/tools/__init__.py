"""Network tooling for APISentry."""
