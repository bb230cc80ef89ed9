"""scorekit: Score workloads to platform configuration with tracked resource provisioning."""

__version__ = "0.1.0"
