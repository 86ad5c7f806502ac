from app.platform.statemachine.engine import PermitTable, StateMachine, TransitionRecord

__all__ = [
    "PermitTable",
    "StateMachine",
    "TransitionRecord",
]
