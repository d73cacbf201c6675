"""Domain services: identity, vote ledger, lifecycle, retention, notifications."""
