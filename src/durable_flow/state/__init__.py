"""Run log persistence and resume-state reconstruction."""

from durable_flow.state.log import StateLog, StateLogEntry
from durable_flow.state.resume import ResumeState, load_resume_state, reconstruct

__all__ = ["ResumeState", "StateLog", "StateLogEntry", "load_resume_state", "reconstruct"]
