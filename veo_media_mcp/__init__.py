"""MCP server exposing Google Veo video and Imagen image generation."""

__version__ = "1.0.0"
