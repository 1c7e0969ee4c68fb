"""dbgateway: one SQL statement, many named database backends."""
from dbgateway.gateway import DatabaseGateway, build_gateway

__version__ = "0.1.0"

__all__ = ["DatabaseGateway", "build_gateway", "__version__"]
