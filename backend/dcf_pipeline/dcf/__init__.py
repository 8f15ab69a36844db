"""Data collection service (DCF) boundary: dataset listing, download and
dataset file metadata."""
