from fastapi import Request

from tripcompare.services.comparison_service import ComparisonEngine


def get_engine(request: Request) -> ComparisonEngine:
    """The engine built by the application lifespan."""
    return request.app.state.engine
