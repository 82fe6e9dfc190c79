"""Serverless deployment of the Google connection endpoints.

A single function handles the consent redirect, the OAuth callback and the
bearer-protected status, token and disconnect calls.
"""

from __future__ import annotations

from typing import Any


def __getattr__(name: str) -> Any:
    if name == "lambda_handler":
        from .handler import lambda_handler as loaded_lambda_handler

        return loaded_lambda_handler
    raise AttributeError(name)


__all__ = ["lambda_handler"]
