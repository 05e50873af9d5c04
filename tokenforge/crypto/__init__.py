"""Key material, key exchange, and token encoding."""
