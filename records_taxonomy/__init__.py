"""
Records Taxonomy — Hierarchical Document Classification for Paperless-ngx
==========================================================================
Hexagonal (Ports & Adapters) architecture.

Layer map
─────────────────────────────────────────────────────
  config/       Settings (.env) and fixed constants
  domain/       Pure business objects (models, taxonomy tree, exceptions) — no I/O
  ports/        Abstract interfaces (Python Protocols)
  adapters/     Concrete implementations of each Port (paperless REST, JSON files)
  services/     Orchestration logic; depends only on Ports, never Adapters
  interfaces/   Delivery layer: CLI, Streamlit browser
  data/         Bundled taxonomy definitions and migration mapping tables
  tests/        Full test suite: unit / integration / e2e

Swapping any external dependency (document store, definition source, audit log):
  1. Write a new adapter in adapters/ implementing the relevant Port
  2. Change the single wiring line in services/container.py
  3. Done — zero other files touched
"""
__version__ = "1.0.0"
