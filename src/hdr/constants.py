"""Package constants."""

VERSION = "0.3.1"
MCP_CLIENT_NAME = "hdr-sdk"
