"""Real-time room broker for group estimation (planning poker)."""
