"""
Generates the tool plan for one request.
What it does:
- Classifies the prompt and routes it to a provider + model
- Runs the initial planning call and validates the tool calls
- Issues at most one expansion call for under-scoped or invalid plans
- Keeps the better of the two attempts (ties keep the first)
- Retries the whole sequence once on the fallback provider after an upstream failure

And, the main purpose:
Turn a natural-language board edit into a validated plan. The plan is only
returned; applying it to the board happens elsewhere.
"""


import time
from typing import Any, Optional

from caseboard_ai.agent.classifier import ComplexityClassifier
from caseboard_ai.agent.validator import describe_issues, plan_quality_score, validate_tool_calls
from caseboard_ai.core.config import Settings, settings as default_settings
from caseboard_ai.core.errors import CaseboardError, UpstreamFailureError, UpstreamRateLimitError
from caseboard_ai.core.logging import get_logger
from caseboard_ai.llm.prompts import build_expansion_user_content, build_initial_user_content, system_prompt
from caseboard_ai.llm.router import ProviderRouter
from caseboard_ai.llm.schemas import Complexity, PlanRequest, PlanResult, ProviderResponse, ToolCall
from caseboard_ai.llm.tracing import Tracer

log = get_logger("agent.generator")

PREVIEW_CHARS = 160
TRACED_TOOL_NAMES = 12


def board_object_count(board_state: Any) -> int:
    if isinstance(board_state, (dict, list)):
        return len(board_state)
    return 0


def expansion_reasons(complexity: Complexity, tool_calls: list[ToolCall], issues: list) -> list[str]:
    reasons = []
    if complexity.is_complex and len(tool_calls) < complexity.minimum_tool_calls:
        reasons.append(
            "The tool plan is likely under-scoped for a complex request "
            f"(expected at least {complexity.minimum_tool_calls} tool calls, got {len(tool_calls)})."
        )
    if issues:
        reasons.append(f"Tool calls have validation issues: {describe_issues(issues)}")
    return reasons


def _pipeline_inputs(kwargs: dict) -> dict:
    request: Optional[PlanRequest] = kwargs.get("request")
    if request is None:
        return {}
    return {
        "boardId": request.board_id,
        "actorUserId": request.actor_id,
        "provider": request.provider or "",
        "modelOverride": request.model_override or "",
        "promptLength": len(request.prompt),
        "promptPreview": request.prompt[:PREVIEW_CHARS],
        "boardObjectCount": board_object_count(request.board_state),
    }


def _pipeline_outputs(result: PlanResult) -> dict:
    message = result.message or ""
    return {
        "toolCallCount": len(result.tool_calls),
        "toolNames": [c.name for c in result.tool_calls[:TRACED_TOOL_NAMES]],
        "stopReason": result.stop_reason,
        "provider": result.provider,
        "model": result.model,
        "assistantMessageLength": len(message),
        "assistantMessagePreview": message[:PREVIEW_CHARS],
    }


def _call_inputs(kwargs: dict) -> dict:
    return {"model": kwargs.get("model"), "userContentLength": len(kwargs.get("user_content") or "")}


def _call_outputs(response: ProviderResponse) -> dict:
    return {"toolCallCount": len(response.tool_calls), "stopReason": response.stop_reason}


class PlanGenerator:
    def __init__(
        self,
        router: ProviderRouter,
        classifier: ComplexityClassifier,
        tracer: Tracer,
        cfg: Settings = default_settings,
    ):
        self.router = router
        self.classifier = classifier
        self.tracer = tracer
        self.cfg = cfg
        self._pipeline = tracer.traced(
            "ai.generate.pipeline",
            {"route": "/api/ai/generate"},
            process_inputs=_pipeline_inputs,
            process_outputs=_pipeline_outputs,
        )(self._run)

    async def generate(self, request: PlanRequest) -> PlanResult:
        return await self._pipeline(request=request)

    async def _run(self, *, request: PlanRequest) -> PlanResult:
        complexity = self.classifier.classify(request.prompt)
        decision = self.router.route(request.board_id, request.actor_id, request.provider)

        # A model override names a model of the provider that was asked for
        override = None if decision.substituted else request.model_override

        log.info(
            f"Planning board={request.board_id} provider={decision.primary} "
            f"complex={complexity.is_complex} min_calls={complexity.minimum_tool_calls} ({complexity.source})"
        )

        try:
            return await self._attempt(decision.primary, complexity, request, override)
        except UpstreamRateLimitError:
            raise
        except UpstreamFailureError as e:
            if decision.fallback is None:
                log.error(f"Plan generation failed on {decision.primary} with no fallback: {e}")
                raise UpstreamFailureError("AI request failed") from e
            log.warning(f"Plan generation failed on {decision.primary}; retrying on {decision.fallback}: {e}")

        try:
            return await self._attempt(decision.fallback, complexity, request, None)
        except UpstreamRateLimitError:
            raise
        except UpstreamFailureError as e:
            log.error(f"Fallback provider {decision.fallback} also failed: {e}")
            raise UpstreamFailureError("AI request failed") from e

    async def _attempt(
        self,
        provider: str,
        complexity: Complexity,
        request: PlanRequest,
        override: Optional[str],
    ) -> PlanResult:
        model = self.router.resolve_model(provider, complexity.is_complex, override)
        system = system_prompt(complexity.is_complex)
        metadata = {
            "boardId": request.board_id,
            "actorUserId": request.actor_id,
            "promptLength": len(request.prompt),
            "boardObjectCount": board_object_count(request.board_state),
            "provider": provider,
            "model": model,
            "providerMode": self.router.mode,
            "isComplex": complexity.is_complex,
        }

        initial = await self._call(
            provider,
            f"ai.generate.initial-plan.{provider}",
            metadata,
            model=model,
            system=system,
            user_content=build_initial_user_content(request.prompt, request.board_state),
        )
        chosen = initial
        issues = validate_tool_calls(initial.tool_calls)

        reasons = expansion_reasons(complexity, initial.tool_calls, issues)
        if reasons:
            expanded = await self._expand(provider, metadata, model, system, request, initial, issues, reasons)
            if expanded is not None:
                expanded_issues = validate_tool_calls(expanded.tool_calls)
                initial_score = plan_quality_score(initial.tool_calls, issues)
                expanded_score = plan_quality_score(expanded.tool_calls, expanded_issues)
                log.info(f"Expansion scores initial={initial_score} expanded={expanded_score}")
                if expanded_score < initial_score:
                    chosen = expanded

        return PlanResult(
            tool_calls=chosen.tool_calls,
            message=chosen.text,
            stop_reason=chosen.stop_reason,
            provider=provider,
            model=model,
        )

    async def _expand(
        self,
        provider: str,
        metadata: dict,
        model: str,
        system: str,
        request: PlanRequest,
        initial: ProviderResponse,
        issues: list,
        reasons: list[str],
    ) -> Optional[ProviderResponse]:
        try:
            return await self._call(
                provider,
                f"ai.generate.expansion-plan.{provider}",
                {**metadata, "previousToolCallCount": len(initial.tool_calls), "validationIssueCount": len(issues)},
                model=model,
                system=system,
                user_content=build_expansion_user_content(request.prompt, initial.tool_calls, initial.text, reasons),
            )
        except UpstreamRateLimitError:
            raise
        except UpstreamFailureError as e:
            log.warning(f"Expansion call failed on {provider}; keeping the initial plan: {e}")
            return None

    async def _call(self, provider: str, run_name: str, metadata: dict, **kwargs) -> ProviderResponse:
        client = self.router.get(provider)
        create_plan = self.tracer.traced(
            run_name,
            metadata,
            process_inputs=_call_inputs,
            process_outputs=_call_outputs,
        )(client.create_plan)
        started = time.perf_counter()
        try:
            response = await create_plan(**kwargs)
        except CaseboardError:
            raise
        except Exception as e:
            raise UpstreamFailureError(f"{provider} call raised {type(e).__name__}: {e}") from e
        log.info(
            f"{run_name}: {len(response.tool_calls)} tool call(s) in {int((time.perf_counter() - started) * 1000)}ms"
        )
        return response
