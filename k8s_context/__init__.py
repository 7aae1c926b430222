"""k8s-context: load, merge and switch Kubernetes contexts."""

__version__ = "1.1.9"
