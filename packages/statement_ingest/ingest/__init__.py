"""File loading and per-institution header templates."""
