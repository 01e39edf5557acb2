from dataclasses import dataclass
from typing import Optional

from caseboard_ai.agent.classifier import ComplexityClassifier
from caseboard_ai.agent.generator import PlanGenerator
from caseboard_ai.core.access import BoardAccessService
from caseboard_ai.core.auth import HmacTokenVerifier, TokenVerifier
from caseboard_ai.core.config import Settings
from caseboard_ai.llm.providers import build_providers
from caseboard_ai.llm.router import ProviderRouter
from caseboard_ai.llm.tracing import Tracer


@dataclass
class Services:
    generator: PlanGenerator
    verifier: TokenVerifier
    access: BoardAccessService
    tracer: Tracer


def build_services(
    cfg: Settings,
    *,
    generator: Optional[PlanGenerator] = None,
    verifier: Optional[TokenVerifier] = None,
    access: Optional[BoardAccessService] = None,
    tracer: Optional[Tracer] = None,
) -> Services:
    """Fill in whatever was not injected with the configured default."""
    tracer = tracer or (generator.tracer if generator is not None else Tracer.from_settings(cfg))
    if generator is None:
        router = ProviderRouter(build_providers(cfg), cfg)
        classifier = ComplexityClassifier(cache_enabled=cfg.CLASSIFIER_PROMPT_CACHE_ENABLED)
        generator = PlanGenerator(router, classifier, tracer, cfg)
    return Services(
        generator=generator,
        verifier=verifier or HmacTokenVerifier.from_settings(cfg),
        access=access or BoardAccessService(),
        tracer=tracer,
    )


def ensure_services(app) -> Services:
    """Build the app's services on first use; later calls reuse them."""
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(app.state.cfg, **app.state.injected)
    return app.state.services
