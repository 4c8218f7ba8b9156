"""Turn persistence collaborators."""
from .turns import HttpTurnPersister, LoggingTurnPersister, TurnPersister, create_persister

__all__ = ["HttpTurnPersister", "LoggingTurnPersister", "TurnPersister", "create_persister"]
