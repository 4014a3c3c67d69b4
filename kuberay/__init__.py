"""Models, helpers and clients for managing Ray clusters, jobs and services on Kubernetes."""

__version__ = "0.2.0"

__all__ = [
    "clientset",
    "dashboard",
    "httpproxy",
    "listers",
    "models",
    "rest",
    "util",
]