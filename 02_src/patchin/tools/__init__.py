"""Command-line helpers: key generation (keygen) and one-shot DMs (send_dm)."""
