"""Personal calendar with best-effort Google Calendar mirroring."""
