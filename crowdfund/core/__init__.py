"""Core trail and execution logic."""
