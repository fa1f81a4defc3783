import asyncio
import os
import random
from time import perf_counter
from typing import Callable, List, Optional

from src.agents.copywriter_agent import CopywriterAgent
from src.specs.agents.copywriter import CopywriterOutput, GenerationRequest
from src.specs.agents.copywriter_agent_instructions import build_caption_prompt
from src.specs.agents.image import ImageResult
from src.specs.common.errors import ConfigurationError, ProviderTimeout
from src.specs.http.generate_posts import GeneratedItem, GeneratePostsResponse
from src.shared.logging_utils import info as log_info, warning as log_warning
from src.tools.search_images_tool import UnsplashImageSearch

DEFAULT_CAPTION_TIMEOUT_SECONDS = 60.0
DEFAULT_IMAGE_TIMEOUT_SECONDS = 15.0
IMAGE_PAGE_RANGE = (1, 10)


def random_page() -> int:
    """Pick an Unsplash result page so repeated topics get some variety."""
    return random.randint(*IMAGE_PAGE_RANGE)


def assemble_results(
    captions: List[str], image: Optional[ImageResult], topic: str
) -> GeneratePostsResponse:
    """Pair every caption with the same image (or no image and the topic as alt)."""
    image_url = image.url if image else None
    alt = image.altText if image else topic
    return GeneratePostsResponse(
        results=[GeneratedItem(caption=c, imageUrl=image_url, alt=alt) for c in captions]
    )


class GeneratePostsWorkflow:
    """Caption + image pipeline behind POST /api/generate-posts.

    Caption generation and the image lookup are independent, so they run
    concurrently on worker threads and the response is assembled once both
    have settled. Each side has its own timeout: a caption timeout fails the
    request with ProviderTimeout, an image timeout just drops the image.
    """

    def __init__(
        self,
        copywriter: CopywriterAgent,
        image_search: Optional[UnsplashImageSearch],
        *,
        caption_timeout: float = DEFAULT_CAPTION_TIMEOUT_SECONDS,
        image_timeout: float = DEFAULT_IMAGE_TIMEOUT_SECONDS,
        page_picker: Callable[[], Optional[int]] = random_page,
    ) -> None:
        self.copywriter = copywriter
        self.image_search = image_search
        self.caption_timeout = caption_timeout
        self.image_timeout = image_timeout
        self.page_picker = page_picker

    @classmethod
    def from_env(cls) -> "GeneratePostsWorkflow":
        try:
            caption_timeout = float(os.getenv("CAPTION_TIMEOUT_SECONDS") or DEFAULT_CAPTION_TIMEOUT_SECONDS)
            image_timeout = float(os.getenv("IMAGE_TIMEOUT_SECONDS") or DEFAULT_IMAGE_TIMEOUT_SECONDS)
        except ValueError as exc:
            raise ConfigurationError("CAPTION_TIMEOUT_SECONDS/IMAGE_TIMEOUT_SECONDS must be numbers") from exc
        return cls(
            CopywriterAgent.from_env(),
            UnsplashImageSearch.from_env(),
            caption_timeout=caption_timeout,
            image_timeout=image_timeout,
        )

    async def _captions(self, request: GenerationRequest, request_id: Optional[str]) -> CopywriterOutput:
        prompt = build_caption_prompt(request.topic, request.tone, request.count)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.copywriter.run, prompt, request.count, request_id=request_id),
                timeout=self.caption_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTimeout(
                "Caption generation exceeded its time budget",
                details={"timeoutSeconds": self.caption_timeout},
            ) from exc

    async def _image(self, topic: str, request_id: Optional[str]) -> Optional[ImageResult]:
        if self.image_search is None:
            return None
        page = self.page_picker()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.image_search.find_image, topic, page, request_id=request_id),
                timeout=self.image_timeout,
            )
        except asyncio.TimeoutError:
            log_warning(request_id, "images:timeout", query=topic, timeoutSeconds=self.image_timeout)
        except Exception as exc:
            log_warning(request_id, "images:unexpected_error", query=topic, error=str(exc))
        return None

    async def run(self, request: GenerationRequest, request_id: Optional[str] = None) -> GeneratePostsResponse:
        start = perf_counter()
        caption_result, image = await asyncio.gather(
            self._captions(request, request_id),
            self._image(request.topic, request_id),
            return_exceptions=True,
        )
        # the image side swallows its own failures; caption errors propagate
        if isinstance(caption_result, BaseException):
            raise caption_result
        if isinstance(image, BaseException):
            image = None
        response = assemble_results(caption_result.captions, image, request.topic)
        log_info(
            request_id,
            "generate:assembled",
            captions=len(response.results),
            attempts=caption_result.attempts,
            hasImage=image is not None,
            durationMs=int((perf_counter() - start) * 1000),
        )
        return response


__all__ = ["GeneratePostsWorkflow", "assemble_results", "random_page"]
