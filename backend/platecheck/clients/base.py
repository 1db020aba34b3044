"""
Shared plumbing for the CheckCarDetails provider clients.

Endpoint format: {base_url}/vehicledata/{datapoint}?apikey={API_KEY}&vrm={PLATE}
Every failure surfaces as a ProviderError carrying a machine-readable code.
No retries happen at this layer.
"""

import logging
from typing import Any, Callable, TypeVar

import httpx

from platecheck.utils.plates import normalize_plate, plate_allowed_in_test_mode, validate_plate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderError(Exception):
    """Raised by provider clients for any transport, auth, rate-limit or data failure."""

    MISSING_API_KEY = "MISSING_API_KEY"
    INVALID_PLATE = "INVALID_PLATE"
    TEST_MODE_PLATE = "TEST_MODE_PLATE"
    INVALID_MILEAGE = "INVALID_MILEAGE"
    AUTH_FAILED = "AUTH_FAILED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    VEHICLE_NOT_FOUND = "VEHICLE_NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    API_TIMEOUT = "API_TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    API_ERROR = "API_ERROR"

    def __init__(
        self,
        message: str,
        code: str = API_ERROR,
        provider: str | None = None,
        status_code: int | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.provider = provider
        self.status_code = status_code
        self.user_message = user_message or "Unable to fetch vehicle data. Please try again."

    def __repr__(self) -> str:
        return f"ProviderError(code={self.code!r}, provider={self.provider!r}, message={str(self)!r})"


class ProviderClient:
    """Base class for clients of the CheckCarDetails vehicledata API."""

    provider_name = "checkcardetails"

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        test_mode: bool = False,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.test_mode = test_mode
        self.timeout = timeout

    def _check_request(self, plate: str) -> str:
        """Validate credentials and plate before spending an API call. Returns the normalized plate."""
        if not self.api_key:
            raise ProviderError(
                f"{self.provider_name} API key not configured",
                code=ProviderError.MISSING_API_KEY,
                provider=self.provider_name,
            )

        error = validate_plate(plate)
        if error:
            raise ProviderError(error, code=ProviderError.INVALID_PLATE, provider=self.provider_name)

        plate = normalize_plate(plate)
        if self.test_mode and not plate_allowed_in_test_mode(plate):
            raise ProviderError(
                f'Invalid VRM for test mode: VRM must contain the letter "A". Current VRM: {plate}',
                code=ProviderError.TEST_MODE_PLATE,
                provider=self.provider_name,
            )
        return plate

    async def request_datapoint(self, datapoint: str, plate: str, **params: Any) -> dict[str, Any]:
        """GET one datapoint and return the decoded JSON body."""
        url = f"{self.base_url}/vehicledata/{datapoint}"
        query = {"apikey": self.api_key, "vrm": plate, **params}

        logger.debug(f"{self.provider_name} request: {datapoint} for {plate}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=query)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response, datapoint, plate) from e
        except httpx.TimeoutException as e:
            logger.error(f"{self.provider_name} {datapoint} timed out for {plate}")
            raise ProviderError(
                f"{self.provider_name} {datapoint} request timeout",
                code=ProviderError.API_TIMEOUT,
                provider=self.provider_name,
                user_message="Request timed out. Please try again.",
            ) from e
        except httpx.RequestError as e:
            # connection, protocol, decoding and redirect failures
            logger.error(f"{self.provider_name} {datapoint} network error for {plate}: {e}")
            raise ProviderError(
                f"{self.provider_name} {datapoint} network error: {e}",
                code=ProviderError.NETWORK_ERROR,
                provider=self.provider_name,
                user_message="Unable to connect to vehicle data service.",
            ) from e
        except ValueError as e:
            # response.json() on a non-JSON body
            raise ProviderError(
                f"{self.provider_name} {datapoint} returned invalid JSON",
                code=ProviderError.MALFORMED_RESPONSE,
                provider=self.provider_name,
            ) from e

        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.provider_name} {datapoint} returned {type(data).__name__}, expected object",
                code=ProviderError.MALFORMED_RESPONSE,
                provider=self.provider_name,
            )

        logger.debug(f"{self.provider_name} {datapoint} ok for {plate}")
        return data

    def parse_body(self, datapoint: str, parser: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a response parser. Any shape error in the body becomes MALFORMED_RESPONSE."""
        try:
            return parser(*args, **kwargs)
        except ProviderError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"{self.provider_name} {datapoint} body could not be parsed: {e!r}")
            raise ProviderError(
                f"{self.provider_name} {datapoint} returned an unexpected body: {e}",
                code=ProviderError.MALFORMED_RESPONSE,
                provider=self.provider_name,
            ) from e

    def _status_error(self, response: httpx.Response, datapoint: str, plate: str) -> ProviderError:
        status = response.status_code
        logger.error(f"{self.provider_name} {datapoint} failed for {plate}: HTTP {status}")

        if status == 401:
            return ProviderError(
                f"{self.provider_name} rejected the API key",
                code=ProviderError.AUTH_FAILED,
                provider=self.provider_name,
                status_code=status,
            )

        if status in (403, 429):
            try:
                body = response.json()
            except ValueError:
                body = None
            api_message = str(body.get("message", "")) if isinstance(body, dict) else ""
            if "daily limit" in api_message.lower():
                message = f"Daily API limit exceeded for {datapoint}"
            else:
                message = f"{self.provider_name} API rate limit exceeded or access forbidden"
            return ProviderError(
                message,
                code=ProviderError.RATE_LIMIT_EXCEEDED,
                provider=self.provider_name,
                status_code=status,
                user_message="Vehicle data is temporarily unavailable. Please try again later.",
            )

        if status == 404:
            return ProviderError(
                f"Vehicle not found: {plate}",
                code=ProviderError.VEHICLE_NOT_FOUND,
                provider=self.provider_name,
                status_code=status,
                user_message="Vehicle data not available for this registration number.",
            )

        if status == 400:
            return ProviderError(
                f"Invalid request for vehicle: {plate}",
                code=ProviderError.BAD_REQUEST,
                provider=self.provider_name,
                status_code=status,
                user_message="Invalid vehicle registration number format.",
            )

        return ProviderError(
            f"{self.provider_name} {datapoint} failed for {plate}: HTTP {status}",
            code=ProviderError.API_ERROR,
            provider=self.provider_name,
            status_code=status,
        )
