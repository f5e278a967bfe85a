"""
HTTP utility functions for the diary search service.

This module provides a safe API request function with proper error handling
and optional retry logic for adapters that talk to remote stores.
"""
import asyncio
import logging
import random
from typing import Any, Optional

import httpx

# Setup logging
logger = logging.getLogger(__name__)


async def safe_api_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_retries: int = 1,
    retry_delay: float = 1.5,
    **kwargs: Any
) -> Optional[Any]:
    """
    Make a safe API request with error handling and optional retries.

    A single attempt is made by default. With ``max_retries`` above one,
    rate-limit, server and connection errors are retried with exponential
    backoff and jitter.

    Args:
        client: The HTTPX client to use for the request
        method: HTTP method (GET, POST, etc.)
        url: URL to request
        max_retries: Maximum number of attempts
        retry_delay: Base delay between retries (with exponential backoff)
        **kwargs: Additional arguments to pass to the client request method

    Returns:
        Optional[Any]: Decoded JSON body, or None for an empty response

    Raises:
        httpx.HTTPError: If the request fails after all attempts
    """
    attempt = 0
    last_error: Optional[Exception] = None

    while attempt < max(1, max_retries):
        # Add jitter to avoid thundering herd issues
        if attempt > 0:
            delay = retry_delay * (2 ** (attempt - 1)) * (0.5 + random.random())
            logger.info(f"Retry attempt {attempt} for {url}. Waiting {delay:.2f}s")
            await asyncio.sleep(delay)

        try:
            logger.debug(f"Making {method} request to {url}")
            response = await client.request(method.upper(), url, **kwargs)
            response.raise_for_status()

            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(f"HTTP error {status_code} for {url}: {e}")

            # Handle specific status codes differently
            if status_code == 429 or (500 <= status_code < 600):
                # These are retryable errors
                last_error = e
                attempt += 1
            else:
                # Client errors are not retryable
                raise

        except (httpx.ConnectError, httpx.ReadTimeout, httpx.WriteTimeout) as e:
            logger.warning(f"Connection/timeout error for {url}: {e}")
            last_error = e
            attempt += 1

    logger.error(f"Failed after {attempt} attempt(s) to {url}")
    if last_error:
        raise last_error

    # This should never happen, but just in case
    raise httpx.RequestError("Request failed for unknown reasons")
