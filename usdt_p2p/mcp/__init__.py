from .server import OfferMCPServer, main

__all__ = ["OfferMCPServer", "main"]
