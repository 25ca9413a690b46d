"""Core domain logic for the WagerLoop picks backend.

This package contains pure, provider-agnostic building blocks:

- ``odds_math``    — American ↔ decimal conversion, parlay pricing
- ``picks``        — pick / game / bookmaker-odds DTOs
- ``posts``        — feed post variant (text post vs. pick post)
- ``sport_config`` — per-sport provider keys and display names

Nothing in this package imports from ``wagerloop.services`` or
``wagerloop.models``.  All modules are side-effect-free and unit-testable
in isolation.
"""
