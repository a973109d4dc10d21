"""Core module for the awardswithfriends application."""

from .types import APIResponse, CommandResult

__all__ = ["APIResponse", "CommandResult"]
