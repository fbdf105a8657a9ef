"""Small builders shared by the test modules."""

from __future__ import annotations

from collections.abc import Callable

import httpx

from chapterizer.acquisition.runner import ProcessResult


def ok(stdout: str = "") -> ProcessResult:
    return ProcessResult(ok=True, stdout=stdout, stderr="", exit_code=0)


def failed(stderr: str = "boom", exit_code: int = 1) -> ProcessResult:
    return ProcessResult(ok=False, stdout="", stderr=stderr, exit_code=exit_code)


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))
