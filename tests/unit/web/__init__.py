"""Unit tests for Pantry web route modules.

Structure:
    tests/unit/web/
    ├── test_routes_refresh.py      # POST /refresh, GET /refresh-status
    ├── test_routes_catalog.py      # Ingredients, vendors, manual prices
    ├── test_routes_health.py       # GET /health
    └── test_dependencies.py        # Service singleton

Testing pattern:
    - Use FastAPI's TestClient for route testing
    - Override the refresh service through app.dependency_overrides
    - Point catalog routes at a throwaway SQLite file
"""
