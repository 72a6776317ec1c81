from .coordinator_fsm import CoordinatorFSM

__all__ = ["CoordinatorFSM"]
