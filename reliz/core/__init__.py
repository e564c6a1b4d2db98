"""Core types: configuration, invocation options, errors and results."""

from .config import Config, ResolvedConfig, resolve
from .errors import ErrorCode, ReleaseError
from .options import BUMP_KINDS, BumpKind, InvocationOptions, parse_argv
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "Config",
    "ResolvedConfig",
    "resolve",
    # options
    "BUMP_KINDS",
    "BumpKind",
    "InvocationOptions",
    "parse_argv",
    # errors
    "ErrorCode",
    "ReleaseError",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
