"""Enumerations used across the event core."""

from enum import Enum


class LoadOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ErrorDomain(str, Enum):
    VALIDATION = "ValidationError"
    RUNTIME_FAULT = "RuntimeFault"


class WaitResult(str, Enum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    INVERTED_FULFILLMENT = "inverted_fulfillment"
    INCORRECT_ORDER = "incorrect_order"
