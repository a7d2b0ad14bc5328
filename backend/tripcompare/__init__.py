"""TripCompare — multi-provider travel offer aggregation and price tracking.

Packages:
    schemas     Pydantic data model (quotes, requests, results, price history)
    services    Orchestrator, adapters, ranking, cache, statistics, forecasting
    routers     FastAPI routes over the engine facade
    models      SQLAlchemy records used by the SQL persistent store
"""

__version__ = "0.1.0"
