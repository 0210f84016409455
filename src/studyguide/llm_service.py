# llm service calling an openai-compatible chat completions endpoint
import requests
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from .config import settings
from .errors import (
    StudyGuideError, ValidationError, InvalidCredentialError, ModelAccessError,
    PayloadTooLargeError, RateLimitError, UpstreamError
)
from .models import OutputKind, UsageInfo
from .prompts import build_messages

logger = logging.getLogger(__name__)

T = TypeVar("T")


# result of one successful generation
@dataclass
class GenerationResult:
    content: str
    model: str
    usage: Optional[UsageInfo] = None


# failures that mean "this key cannot use this model", worth trying the next one
def is_model_access_error(error: Exception) -> bool:
    return isinstance(error, UpstreamError) and (
        error.status == 403 or error.code == "model_not_found"
    )


# map a raw upstream failure onto the api error taxonomy
def classify_upstream_error(error: Exception) -> StudyGuideError:
    if isinstance(error, StudyGuideError) and not isinstance(error, UpstreamError):
        return error

    status = getattr(error, "status", None)
    code = getattr(error, "code", None)
    message = getattr(error, "message", None) or str(error)

    if status == 401:
        return InvalidCredentialError("Invalid OpenAI API key. Please check your API key and try again.")
    if status == 403 or code == "model_not_found":
        return ModelAccessError(
            "Your OpenAI API key does not have access to the required models. "
            "Please ensure your API key has access to GPT models or upgrade your OpenAI plan."
        )
    if status == 429:
        return RateLimitError("OpenAI API rate limit exceeded. Please try again later.")
    if status == 413:
        return PayloadTooLargeError("Content too large. Please try with a smaller file.")

    if message and "API key" in message:
        return InvalidCredentialError(f"OpenAI API key issue: {message}")
    if message and "parsing" in message:
        return ValidationError(f"File parsing failed: {message}")

    return StudyGuideError(message or "An error occurred while generating the study guide. Please try again.")


# ordered retry across model identifiers
class ModelFallbackPolicy:
    """
    Try each model in order. A failure the classifier calls retryable moves on
    to the next model; any other failure is raised straight away. If every
    model fails, the last error is raised.
    """

    def __init__(self, models: Sequence[str], is_retryable: Callable[[Exception], bool] = is_model_access_error):
        if not models:
            raise ValueError("At least one model is required")
        self.models = list(models)
        self.is_retryable = is_retryable

    def run(self, attempt: Callable[[str], T]) -> Tuple[str, T]:
        last_error: Optional[Exception] = None

        for model in self.models:
            try:
                logger.info(f"Trying model: {model}")
                result = attempt(model)
                logger.info(f"✓ Successfully used model: {model}")
                return model, result
            except Exception as e:
                logger.warning(f"Model {model} failed: {e}")
                if not self.is_retryable(e):
                    raise
                last_error = e

        raise last_error


# thin client over POST {base_url}/chat/completions
class ChatCompletionsClient:
    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.timeout = timeout or settings.timeout_sec
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def create(self, model: str, messages: List[Dict[str, str]], max_tokens: int, temperature: float) -> Dict[str, Any]:
        """Send one chat completion request and return the decoded body"""
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise UpstreamError("Request timed out. The model might be too slow or overloaded.")
        except requests.exceptions.ConnectionError as e:
            raise UpstreamError(f"Cannot connect to the chat completions API at {self.base_url}: {e}")

        if response.status_code != 200:
            raise self._error_from_response(response)

        return response.json()

    # build an UpstreamError from the json error body when there is one
    def _error_from_response(self, response: requests.Response) -> UpstreamError:
        message = response.text or response.reason or "Unknown error"
        code = None
        try:
            body = response.json()
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict):
                message = error.get("message") or message
                code = error.get("code")
            elif isinstance(error, str):
                message = error
        except ValueError:
            pass
        return UpstreamError(message, status=response.status_code, code=code)

    def close(self):
        self.session.close()


# service producing study material text for a given output kind
class LLMService:
    def __init__(self, api_key: str, client: Optional[ChatCompletionsClient] = None,
                 models: Optional[Sequence[str]] = None):
        # only a client built here is ours to close
        self._owns_client = client is None
        self.client = client or ChatCompletionsClient(api_key)
        self.policy = ModelFallbackPolicy(models or settings.models)
        self.max_tokens = settings.max_tokens
        self.temperature = settings.temperature

    def generate(self, kind: Union[OutputKind, str], content: str) -> GenerationResult:
        """Generate study material, falling back across models on access errors"""
        messages = build_messages(kind, content)
        logger.info(f"Prompt length: {len(messages[-1]['content'])}")

        try:
            model, body = self.policy.run(
                lambda model: self.client.create(model, messages, self.max_tokens, self.temperature)
            )
        except Exception as e:
            logger.error(f"Error generating text: {str(e)}")
            raise classify_upstream_error(e)

        choices = body.get("choices") or []
        generated = ""
        if choices:
            generated = (choices[0].get("message") or {}).get("content") or ""

        if not generated:
            logger.error("No content generated by the model")
            raise StudyGuideError("Failed to generate study guide content")

        usage = UsageInfo(**body["usage"]) if isinstance(body.get("usage"), dict) else None
        logger.info(f"Study guide generated, content length: {len(generated)}")
        return GenerationResult(content=generated, model=model, usage=usage)

    def close(self):
        """Release the http session of a client this service created"""
        if self._owns_client:
            self.client.close()


# build a service for the credential on this request
def get_llm_service(api_key: str) -> LLMService:
    """Create an LLM service bound to the given API key"""
    return LLMService(api_key)
