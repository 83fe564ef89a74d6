"""
PipeRun CRM gateway: MCP tools and RevOps workflows over the PipeRun REST API.
"""

__version__ = "0.1.0"
