"""HTTP client for the text-completion API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from completion_operator.integrations.completion.exceptions import (
    CompletionAPIError,
    CompletionAuthError,
    CompletionConnectionError,
    CompletionResponseError,
)
from completion_operator.integrations.completion.models import (
    CompletionRequest,
    CompletionResult,
)

if TYPE_CHECKING:
    from completion_operator.integrations.completion.config import CompletionConfig

logger = structlog.get_logger()


class CompletionClient:
    """HTTP client for a GPT-style completions endpoint.

    One call to ``complete`` is one POST to the engine's completions
    endpoint. Connection failures and timeouts are retried with exponential
    backoff; every other failure surfaces as a CompletionError subclass.

    Example:
        ```python
        from completion_operator.integrations.completion import (
            CompletionClient,
            CompletionConfig,
        )

        with CompletionClient(CompletionConfig.from_env()) as client:
            result = client.complete("kind: Pod\\n", max_tokens=64)
            print(result.text)
        ```
    """

    def __init__(self, config: CompletionConfig) -> None:
        """Initialize the completion client.

        Args:
            config: Provider configuration with the API key.
        """
        self.config = config
        headers = {
            "Authorization": f"Bearer {config.api_key.get_secret_value()}",
            "Content-Type": "application/json",
        }
        if config.organization:
            headers["OpenAI-Organization"] = config.organization
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout),
            headers=headers,
        )
        logger.info(
            "completion_client_initialized",
            base_url=config.base_url,
            engine=config.engine,
        )

    def __enter__(self) -> CompletionClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        """POST with retries on transient transport failures.

        Raises:
            CompletionConnectionError: When every attempt failed to connect.
        """

        @retry(
            retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )
        def _request() -> httpx.Response:
            return self._client.post(path, json=body)

        try:
            return _request()
        except httpx.TimeoutException as e:
            logger.error("completion_request_timed_out", path=path, error=str(e))
            raise CompletionConnectionError(
                "Request to completion API timed out",
                details=str(e),
            ) from e
        except httpx.HTTPError as e:
            logger.error("completion_connection_error", path=path, error=str(e))
            raise CompletionConnectionError(
                f"Failed to connect to completion API: {e}",
                details=str(e),
            ) from e

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Check the status code and decode the JSON body.

        Raises:
            CompletionAuthError: On 401/403.
            CompletionAPIError: On any other non-2xx status.
            CompletionResponseError: If the body is not a JSON object.
        """
        if response.status_code in (401, 403):
            raise CompletionAuthError(
                "Completion API rejected the API key",
                details=response.text,
            )
        if not response.is_success:
            try:
                error_data = response.json()
                message = error_data.get("error", {}).get("message", response.text)
            except Exception:
                message = response.text
            raise CompletionAPIError(
                f"Completion API error: {message}",
                status_code=response.status_code,
                details=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CompletionResponseError(
                "Completion API returned invalid JSON",
                details=response.text,
            ) from e
        if not isinstance(data, dict):
            raise CompletionResponseError(
                "Completion API returned an unexpected payload",
                details=response.text,
            )
        return data

    def build_request(self, prompt: str, max_tokens: int) -> CompletionRequest:
        """Build the request body with the fixed generation parameters."""
        return CompletionRequest(prompt=prompt, max_tokens=max_tokens)

    def complete(self, prompt: str, max_tokens: int) -> CompletionResult:
        """Generate a completion for ``prompt``.

        Args:
            prompt: Full prompt text.
            max_tokens: Token budget.

        Returns:
            The parsed result; ``result.text`` is the first choice.

        Raises:
            CompletionConnectionError: Transport failure after retries.
            CompletionAuthError: Invalid API key.
            CompletionAPIError: Non-success HTTP status.
            CompletionResponseError: Success status without any choices.
        """
        request = self.build_request(prompt, max_tokens)
        logger.debug("requesting_completion", engine=self.config.engine, max_tokens=max_tokens)

        response = self._post(self.config.completions_path, request.model_dump())
        data = self._handle_response(response)

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise CompletionResponseError(
                "Completion API response contained no choices",
                details=response.text,
            )

        try:
            result = CompletionResult.from_api_response(data)
        except (KeyError, ValueError) as e:
            raise CompletionResponseError(
                "Completion API returned malformed choices",
                details=str(e),
            ) from e

        logger.debug("completion_received", choices=len(result.choices), model=result.model)
        return result
