"""WHO z-score reference tables (CSV package data)."""
