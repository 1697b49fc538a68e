"""
Provider Query Fan-out

Sends every prompt to every enabled provider through a bounded worker
pool and yields responses as they complete.

- At most max_concurrency calls are in flight at once
- Each call is bounded by its own timeout
- A failing call becomes a timeout/error ProviderResponse; siblings continue
- An optional run deadline force-finishes the stage: pairs still
  outstanding are recorded as timeouts and their calls cancelled

Results are fanned back in through an asyncio.Queue, so no response list
is shared between worker tasks.
"""

import asyncio
import logging
import time
from typing import AsyncIterator, List, Optional, Set, Tuple

from ..errors import ProviderError, ProviderTimeout
from ..models import Prompt, ProviderIdentity, ProviderResponse, ResponseStatus

logger = logging.getLogger(__name__)


RUN_DEADLINE_DETAIL = "run deadline exceeded"

Job = Tuple[Prompt, ProviderIdentity]


class ProviderQueryFanout:
    """
    Bounded concurrent querying of (prompt, provider) pairs.

    Usage:
        fanout = ProviderQueryFanout(registry, timeout=30, max_concurrency=4)
        async for response in fanout.run(prompts, providers):
            ...
    """

    def __init__(self, registry, timeout: float = 30.0, max_concurrency: int = 4):
        """
        Args:
            registry: ProviderRegistry used to issue queries
            timeout: Per-call timeout in seconds
            max_concurrency: Maximum simultaneous provider calls
        """
        self.registry = registry
        self.timeout = timeout
        self.max_concurrency = max(1, max_concurrency)

    async def run(
        self,
        prompts: List[Prompt],
        providers: List[ProviderIdentity],
        deadline: Optional[float] = None,
    ) -> AsyncIterator[ProviderResponse]:
        """
        Query every pair and yield each response as it completes.

        Args:
            prompts: Frozen prompt list
            providers: Providers enabled for the run
            deadline: Absolute time.monotonic() value after which the
                stage is force-finished (optional)

        Yields:
            Exactly len(prompts) x len(providers) responses
        """
        jobs: asyncio.Queue = asyncio.Queue()
        for prompt in prompts:
            for provider in providers:
                jobs.put_nowait((prompt, provider))

        total = jobs.qsize()
        if not total:
            return

        results: asyncio.Queue = asyncio.Queue()
        workers = [
            asyncio.create_task(self._worker(jobs, results))
            for _ in range(min(self.max_concurrency, total))
        ]
        logger.info(
            f"Querying {len(providers)} providers x {len(prompts)} prompts "
            f"with {len(workers)} workers"
        )

        done: Set[Tuple[str, str]] = set()
        try:
            while len(done) < total:
                try:
                    response = await self._next_result(results, deadline)
                except asyncio.TimeoutError:
                    break
                done.add((response.prompt_id, response.provider_id))
                yield response

            if len(done) < total:
                logger.warning(
                    f"Run deadline exceeded with {total - len(done)} provider calls outstanding"
                )
                await self._cancel(workers)

                # Calls that finished while the workers were being cancelled
                while not results.empty():
                    response = results.get_nowait()
                    done.add((response.prompt_id, response.provider_id))
                    yield response

                for prompt in prompts:
                    for provider in providers:
                        if (prompt.id, provider.id) not in done:
                            done.add((prompt.id, provider.id))
                            yield ProviderResponse(
                                provider_id=provider.id,
                                prompt_id=prompt.id,
                                raw_text="",
                                latency_ms=0,
                                status=ResponseStatus.TIMEOUT,
                                error_detail=RUN_DEADLINE_DETAIL,
                            )
        finally:
            await self._cancel(workers)

    async def collect(
        self,
        prompts: List[Prompt],
        providers: List[ProviderIdentity],
        deadline: Optional[float] = None,
    ) -> List[ProviderResponse]:
        """Run the fan-out and return all responses in completion order."""
        return [response async for response in self.run(prompts, providers, deadline)]

    @staticmethod
    async def _next_result(results: asyncio.Queue, deadline: Optional[float]) -> ProviderResponse:
        if deadline is None:
            return await results.get()
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise asyncio.TimeoutError()
        return await asyncio.wait_for(results.get(), timeout=remaining)

    @staticmethod
    async def _cancel(workers: List[asyncio.Task]):
        pending = [w for w in workers if not w.done()]
        for worker in pending:
            worker.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _worker(self, jobs: asyncio.Queue, results: asyncio.Queue):
        while True:
            try:
                prompt, provider = jobs.get_nowait()
            except asyncio.QueueEmpty:
                return
            results.put_nowait(await self._call(prompt, provider))

    async def _call(self, prompt: Prompt, provider: ProviderIdentity) -> ProviderResponse:
        """Issue one query; never raises except on cancellation."""
        started = time.monotonic()
        status = ResponseStatus.OK
        text = ""
        detail = None

        try:
            reply = await asyncio.wait_for(
                self.registry.query(provider.id, prompt.text, self.timeout),
                timeout=self.timeout,
            )
            text = reply.text or ""
        except (ProviderTimeout, asyncio.TimeoutError):
            status = ResponseStatus.TIMEOUT
            detail = f"timed out after {self.timeout:g}s"
        except ProviderError as e:
            status = ResponseStatus.ERROR
            detail = str(e)
        except Exception as e:
            status = ResponseStatus.ERROR
            detail = f"{type(e).__name__}: {e}"

        latency_ms = int((time.monotonic() - started) * 1000)
        if status != ResponseStatus.OK:
            logger.warning(
                f"{provider.display_name} failed on {prompt.id} "
                f"({status.value}, {latency_ms}ms): {detail}"
            )

        return ProviderResponse(
            provider_id=provider.id,
            prompt_id=prompt.id,
            raw_text=text,
            latency_ms=latency_ms,
            status=status,
            error_detail=detail,
        )
