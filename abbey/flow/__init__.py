"""Timed free-writing sessions."""

from .session import FlowSession, FlowState, FlowStateError, FlowTick, format_clock

__all__ = ["FlowSession", "FlowState", "FlowStateError", "FlowTick", "format_clock"]
