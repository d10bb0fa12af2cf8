"""Core domain: errors, enums, models, stats normalization."""
