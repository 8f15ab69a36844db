"""Report import and export services."""
