"""Rendering engine, context builder and tree materializer."""
