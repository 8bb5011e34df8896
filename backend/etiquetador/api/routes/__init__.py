# API routes
from etiquetador.api.routes import health, labels

__all__ = ["health", "labels"]
