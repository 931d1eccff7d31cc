"""Pydantic records exchanged between services and over HTTP."""
