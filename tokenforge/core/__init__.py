"""Settings, logging, errors, and bootstrap wiring."""
