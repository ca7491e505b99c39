from __future__ import annotations

__all__ = [
    "EngineError",
    "UnknownFormat",
    "DecodeFailure",
    "MalformedDocument",
    "SerializationFailure",
    "InvalidEncoding",
    "MalformedArgument",
    "MissingArgument",
    "OutOfBounds",
    "EncodeFailure",
    "UnknownOperation",
]


class EngineError(Exception):
    """Terminal failure of a single call. `code` names the error kind, `stage` where it happened."""

    code = "EngineError"
    stage = "effect"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage

    def describe(self, operation: str) -> str:
        return f"{operation}: {self.stage} failed [{self.code}]: {self.message}"


class UnknownFormat(EngineError):
    code = "UnknownFormat"
    stage = "decode"


class DecodeFailure(EngineError):
    code = "DecodeFailure"
    stage = "decode"


class MalformedDocument(EngineError):
    code = "MalformedDocument"
    stage = "parse"


class SerializationFailure(EngineError):
    code = "SerializationFailure"
    stage = "serialize"


class InvalidEncoding(EngineError):
    code = "InvalidEncoding"
    stage = "argument"


class MalformedArgument(EngineError):
    code = "MalformedArgument"
    stage = "argument"


class MissingArgument(EngineError):
    code = "MissingArgument"
    stage = "argument"


class OutOfBounds(EngineError):
    code = "OutOfBounds"
    stage = "effect"


class EncodeFailure(EngineError):
    code = "EncodeFailure"
    stage = "encode"


class UnknownOperation(EngineError):
    code = "UnknownOperation"
    stage = "dispatch"
