"""VPS provisioner — compiles and runs server-provisioning automation."""

__version__ = "0.1.0"
