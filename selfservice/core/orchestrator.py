import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from selfservice.core import state_machine as sm
from selfservice.core.context import ProcessContext
from selfservice.core.errors import ConfigurationError, InvalidTokenError, SelfServiceError
from selfservice.core.flow import FlowDefinition, StageBinding
from selfservice.core.stage import Stage, StageServices
from selfservice.observability.logging import log
from selfservice.stages.registry import create_stage
from selfservice.store.models import FlowState
from selfservice.store.token_codec import TokenCodec


@dataclass
class FlowResponse:
    flow: str
    stage: Optional[str]
    stage_index: int
    status: str
    requirements: Optional[Dict[str, Any]]
    token: Optional[str]
    error: Optional[Dict[str, Any]] = None
    additions: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow": self.flow,
            "stage": self.stage,
            "stageIndex": self.stage_index,
            "status": self.status,
            "requirements": self.requirements,
            "token": self.token,
            "error": self.error,
            "additions": self.additions,
        }


class FlowEngine:
    """
    Drives one flow definition. Holds no per-flow state: everything a
    request needs comes from the token, and everything it changes goes back
    into a fresh token.
    """

    def __init__(self, flow: FlowDefinition, codec: TokenCodec, services: Optional[StageServices] = None):
        self.flow = flow
        self.codec = codec
        self._stages = tuple(create_stage(b.stage_type, b.config, services) for b in flow.stages)

    def start(self) -> FlowResponse:
        return self.handle(None)

    def handle(
        self,
        token: Optional[str],
        input_data: Optional[Dict[str, Any]] = None,
        stage_tag: Optional[str] = None,
    ) -> FlowResponse:
        start_time = time.time()
        state = self._load(token)

        if state.is_terminal:
            return self._terminal(state)

        binding = self.flow.binding_at(state.cursor)
        if binding is None:
            return self._fail(state, f"Stage index {state.cursor} is outside flow '{self.flow.name}'")
        stage = self._stages[state.cursor]

        # Input aimed at a later stage is ignored until that stage is current
        if input_data is not None and stage_tag is not None and stage_tag != binding.tag:
            log(
                event="stage_input_ignored",
                flow=self.flow.name,
                stage=binding.tag,
                submittedFor=stage_tag,
            )
            input_data = None

        if input_data is None:
            response = self._requirements(state, binding, stage)
        else:
            response = self._advance(state, binding, stage, input_data)

        log(
            event="flow_step_processed",
            flow=self.flow.name,
            stage=binding.tag,
            stageIndex=response.stage_index,
            status=response.status,
            error=(response.error or {}).get("message", ""),
            latency_ms=int((time.time() - start_time) * 1000),
        )
        return response

    def _load(self, token: Optional[str]) -> FlowState:
        if token is None:
            log(event="flow_started", flow=self.flow.name)
            return FlowState(flow=self.flow.name)
        state = self.codec.decode(token)
        if state.flow != self.flow.name:
            raise InvalidTokenError("Token was issued for a different flow")
        return state

    def _context(self, state: FlowState, binding: StageBinding, input_data: Optional[Dict[str, Any]] = None) -> ProcessContext:
        return ProcessContext(
            flow_name=self.flow.name,
            stage_index=state.cursor,
            stage_tag=binding.tag,
            state=state.slots,
            input_data=input_data,
        )

    def _respond(
        self,
        state: FlowState,
        binding: Optional[StageBinding],
        requirements: Optional[Dict[str, Any]],
        error: Optional[Dict[str, Any]] = None,
        additions: Optional[Dict[str, Any]] = None,
    ) -> FlowResponse:
        return FlowResponse(
            flow=self.flow.name,
            stage=binding.tag if binding is not None else None,
            stage_index=state.cursor,
            status=state.status,
            requirements=requirements,
            token=self.codec.encode(state),
            error=error,
            additions=dict(additions or {}),
        )

    def _requirements(
        self,
        state: FlowState,
        binding: StageBinding,
        stage: Stage,
        error: Optional[Dict[str, Any]] = None,
        additions: Optional[Dict[str, Any]] = None,
    ) -> FlowResponse:
        try:
            requirements = stage.gather_initial_requirements(self._context(state, binding), binding.config)
        except ConfigurationError as e:
            return self._fail(state, e.message)
        except SelfServiceError as e:
            # e.g. the store needed to phrase the questions is unavailable
            return self._respond(state, binding, None, error=error or e.to_dict(), additions=additions)
        return self._respond(state, binding, requirements, error=error, additions=additions)

    def _advance(self, state: FlowState, binding: StageBinding, stage: Stage, input_data: Dict[str, Any]) -> FlowResponse:
        context = self._context(state, binding, input_data)
        try:
            outcome = stage.advance(context, binding.config)
        except ConfigurationError as e:
            return self._fail(state, e.message)
        except SelfServiceError as e:
            # nothing the stage wrote survives; same step, same requirements
            log(
                event="stage_rejected",
                flow=self.flow.name,
                stage=binding.tag,
                errorType=type(e).__name__,
                error=e.message,
            )
            return self._requirements(state, binding, stage, error=e.to_dict())

        state.slots.update(context.writes)

        if not outcome.is_success:
            return self._respond(state, binding, outcome.requirements)

        state.cursor += 1
        log(event="stage_advanced", flow=self.flow.name, stage=binding.tag, writes=context.write_count)

        next_binding = self.flow.binding_at(state.cursor)
        if next_binding is None:
            state.status = sm.COMPLETED
            log(event="flow_completed", flow=self.flow.name, stages=len(self.flow))
            return self._respond(state, None, None, additions=outcome.output)

        return self._requirements(state, next_binding, self._stages[state.cursor], additions=outcome.output)

    def _fail(self, state: FlowState, message: str) -> FlowResponse:
        state.status = sm.FAILED
        log(event="flow_failed", flow=self.flow.name, stageIndex=state.cursor, error=message)
        return self._respond(
            state,
            self.flow.binding_at(state.cursor),
            None,
            error=ConfigurationError(message).to_dict(),
        )

    def _terminal(self, state: FlowState) -> FlowResponse:
        message = "Flow has already completed" if state.status == sm.COMPLETED else "Flow has failed"
        return self._respond(state, None, None, error={"code": 400, "message": message})
