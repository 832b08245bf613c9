from enum import Enum

class RequestState(str, Enum):
    RECEIVED = "RECEIVED"
    PLAN_BUILT = "PLAN_BUILT"
    GATE_FAILED = "GATE_FAILED"
    GATE_PASSED = "GATE_PASSED"
    FORWARDED = "FORWARDED"
    FORWARD_ERROR = "FORWARD_ERROR"
    COMPOSED = "COMPOSED"
    SENT = "SENT"
