"""Booktractor portal: session-aware view-models over the booking backend."""
