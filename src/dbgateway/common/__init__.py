"""Cross-cutting utilities: settings, logging, errors and value normalization."""
