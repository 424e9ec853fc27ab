from . import analysis, billing, documents, files, metrics, reports

__all__ = ["analysis", "billing", "documents", "files", "metrics", "reports"]
