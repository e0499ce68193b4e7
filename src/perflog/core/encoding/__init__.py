"""Encoders for exposing retained log entries."""
