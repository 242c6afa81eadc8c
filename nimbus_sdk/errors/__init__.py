from .exceptions import (
    EvalDetailError,
    EvalError,
    HttpError,
    JsonError,
    NimbusError,
    PrerequisiteDepthOverflow,
    PrerequisiteError,
    PrerequisiteNotExist,
    UrlError,
)

__all__ = [
    "EvalDetailError",
    "EvalError",
    "HttpError",
    "JsonError",
    "NimbusError",
    "PrerequisiteDepthOverflow",
    "PrerequisiteError",
    "PrerequisiteNotExist",
    "UrlError",
]
