"""Tiered bearer-credential issuance with cached key, signature, and token tiers."""
