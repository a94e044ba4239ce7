# ElevenLabs CLI - command-line client and MCP tool server for the ElevenLabs API

__version__ = "0.1.0"
