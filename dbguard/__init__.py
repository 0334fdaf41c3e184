"""dbguard: policy-enforcing PostgreSQL gateway for MCP clients."""
__version__ = "0.1.0"
