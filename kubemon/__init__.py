"""kubemon: convergence engine for the Kubernetes monitoring workload."""

__version__ = "0.1.0"
