"""MCP server exposing the Velixar memory API as tools and resources."""

__version__ = "0.2.2"
