"""Shared plumbing for the Eris hub, agent and controller."""
