"""Platform adapters: subprocess execution and HTTP."""

from .http import HttpClient, HttpError, MockHttpClient, RealHttpClient
from .process import ProcessError, run, run_live, run_shell

__all__ = [
    # http
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
    # process
    "ProcessError",
    "run",
    "run_live",
    "run_shell",
]
