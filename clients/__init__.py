"""Async HTTP clients for the recruiting backend."""

from clients.cache import TTLCache
from clients.candidates import RoundCandidatesApi
from clients.credentials import (
    CallbackCredentialProvider,
    CredentialProvider,
    StaticCredentialProvider,
)
from clients.evaluation import EvaluationApi, EvaluationService
from clients.http_client import HttpClient, RateLimiter
from clients.rounds import RoundsApi

__all__ = [
    "HttpClient",
    "RateLimiter",
    "TTLCache",
    "CredentialProvider",
    "StaticCredentialProvider",
    "CallbackCredentialProvider",
    "RoundsApi",
    "RoundCandidatesApi",
    "EvaluationService",
    "EvaluationApi",
]
