"""Conversation synchronization and read-state engine for the agent inbox."""
