"""Question session: initial deliberation plus bounded resolve rounds.

One DeliberationSession owns the state of one active question. State changes
only at the start and the end of a run; a newer question bumps the
generation counter so results of any run still in flight are discarded.
"""

import logging
from collections.abc import Awaitable, Sequence
from enum import Enum

from resolve.arbiter import Arbiter, ArbiterError
from resolve.classifier import StanceClassifier
from resolve.fanout import AdvocateFanOut, build_initial_prompt, build_reconsider_prompt
from resolve.labeler import OptionLabeler
from resolve.models import (
    MISSING_KEY,
    NO_RESPONSE,
    AdvocateOutput,
    AdvocateResult,
    LabeledOption,
    LabelResult,
    ProblemType,
    Provider,
    RunRecord,
    StanceGroup,
    TurnResult,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 2


class RoundState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class LabelingError(RuntimeError):
    """Closed-form options could not be extracted; nothing was sent to advocates."""

    def __init__(self, result: LabelResult) -> None:
        self.result = result
        super().__init__(result.user_message())


class RoundRejectedError(RuntimeError):
    """A resolve round was requested while its preconditions do not hold."""


class SupersededError(RuntimeError):
    """A newer question was submitted while this run was in flight."""


def rival_reasoning(
    provider: Provider,
    results: Sequence[AdvocateResult],
    groups: Sequence[StanceGroup],
) -> str:
    """Explanations of every advocate outside the provider's own stance group."""
    own = next((set(g.members) for g in groups if provider in g.members), {provider})
    by_provider = {r.provider: r for r in results}
    blocks = [
        f"{by_provider[p].provider_name}:\n{by_provider[p].explanation}"
        for p in Provider
        if p not in own
        and p in by_provider
        and by_provider[p].summary not in (NO_RESPONSE, MISSING_KEY)
    ]
    return "\n\n".join(blocks)


class DeliberationSession:
    """Submit-question and resolve-round entry points for one question at a time."""

    def __init__(
        self,
        fanout: AdvocateFanOut,
        labeler: OptionLabeler,
        classifier: StanceClassifier,
        arbiter: Arbiter,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
    ) -> None:
        self._fanout = fanout
        self._labeler = labeler
        self._classifier = classifier
        self._arbiter = arbiter
        self._max_rounds = max_rounds
        self._generation = 0
        self._in_flight = False
        self._reset("", ProblemType.GENERAL)

    def _reset(self, question: str, problem_type: ProblemType) -> None:
        self._question = question
        self._problem_type = problem_type
        self._options: tuple[LabeledOption, ...] = ()
        self._results: list[AdvocateResult] = []
        self._groups: list[StanceGroup] = []
        self._round_index = 0
        self._state = RoundState.IDLE
        self._runs: list[RunRecord] = []

    @property
    def state(self) -> RoundState:
        return self._state

    @property
    def round_index(self) -> int:
        return self._round_index

    @property
    def max_rounds(self) -> int:
        return self._max_rounds

    @property
    def question(self) -> str:
        return self._question

    @property
    def problem_type(self) -> ProblemType:
        return self._problem_type

    @property
    def options(self) -> tuple[LabeledOption, ...]:
        return self._options

    @property
    def results(self) -> list[AdvocateResult]:
        return list(self._results)

    @property
    def groups(self) -> list[StanceGroup]:
        return list(self._groups)

    @property
    def runs(self) -> list[RunRecord]:
        return list(self._runs)

    def rejection_reason(self) -> str | None:
        """Why a resolve round cannot start now, or None if it can."""
        if self._in_flight:
            return "A run is already in progress."
        if not self._results:
            return "No answers to reconsider yet; submit a question first."
        if self._round_index >= self._max_rounds:
            return f"Resolve round limit reached ({self._max_rounds})."
        if len(self._groups) <= 1:
            return "All advocates already agree."
        return None

    def can_resolve(self) -> bool:
        return self.rejection_reason() is None

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            logger.info("Discarding results of superseded run (generation %d)", generation)
            raise SupersededError("A newer question replaced this run.")

    async def _label(self, raw_question: str, generation: int) -> LabelResult:
        labeled = await self._labeler.label(raw_question)
        self._check_current(generation)
        if not labeled.ok:
            raise LabelingError(labeled)
        return labeled

    async def _arbitrate(self, summary: Awaitable[str]) -> tuple[str | None, str | None]:
        try:
            return await summary, None
        except ArbiterError as exc:
            logger.warning("Arbiter failed: %s", exc)
            return None, str(exc)

    def _record(self, run_type: str, arbiter_output: str | None, arbiter_error: str | None) -> RunRecord:
        return RunRecord(
            run_index=self._round_index,
            run_type=run_type,
            problem_type=self._problem_type,
            advocate_outputs=[AdvocateOutput.from_result(r) for r in self._results],
            classifier_output=list(self._groups),
            arbiter_output=arbiter_output,
            arbiter_error=arbiter_error,
            mcq_disagreement=self._problem_type.is_closed_form and len(self._groups) > 1,
        )

    async def submit_question(self, question: str, problem_type: ProblemType) -> TurnResult:
        """Start a new question: resets round history and runs the initial pass.

        Raises:
            LabelingError: Closed-form options could not be extracted.
            SupersededError: Another question was submitted meanwhile.
        """
        self._generation += 1
        generation = self._generation
        self._reset(question, problem_type)
        self._in_flight = True
        self._state = RoundState.RUNNING
        logger.info("New %s question (generation %d)", problem_type.value, generation)

        try:
            stem, options = question, ()
            if problem_type.is_closed_form:
                labeled = await self._label(question, generation)
                stem, options = labeled.stem, labeled.options

            results = await self._fanout.run(build_initial_prompt(problem_type, stem, options))
            self._check_current(generation)
            groups = await self._classifier.classify(problem_type, stem, results)
            self._check_current(generation)
            arbiter_output, arbiter_error = await self._arbitrate(
                self._arbiter.summarize_initial(groups, results)
            )
            self._check_current(generation)

            self._options = options
            self._results = results
            self._groups = groups
            self._state = RoundState.FAILED if arbiter_error else RoundState.COMPLETED
            record = self._record("initial", arbiter_output, arbiter_error)
            self._runs.append(record)
            return TurnResult(message=question, run=record)
        except Exception:
            if generation == self._generation:
                self._state = RoundState.FAILED
            raise
        finally:
            if generation == self._generation:
                self._in_flight = False

    async def resolve_round(self) -> TurnResult:
        """Run one reconsideration round over the current disagreement.

        Raises:
            RoundRejectedError: Preconditions do not hold; nothing was changed.
            LabelingError: Re-labeling failed; the round still counts.
            SupersededError: A new question was submitted meanwhile.
        """
        reason = self.rejection_reason()
        if reason:
            raise RoundRejectedError(reason)

        generation = self._generation
        self._in_flight = True
        self._state = RoundState.RUNNING
        self._round_index += 1
        prev_results, prev_groups = self._results, self._groups
        logger.info("Resolve round %d/%d started", self._round_index, self._max_rounds)

        try:
            stem, options = self._question, self._options
            if self._problem_type.is_closed_form:
                labeled = await self._label(self._question, generation)
                stem, options = labeled.stem, labeled.options

            prompts = {
                p: build_reconsider_prompt(
                    self._problem_type,
                    stem,
                    options,
                    next((r for r in prev_results if r.provider is p), None),
                    rival_reasoning(p, prev_results, prev_groups),
                )
                for p in Provider
            }
            new_results = await self._fanout.run(prompts)
            self._check_current(generation)
            new_groups = await self._classifier.classify(self._problem_type, stem, new_results)
            self._check_current(generation)
            summary, arbiter_error = await self._arbitrate(
                self._arbiter.summarize_changes(prev_groups, prev_results, new_groups, new_results)
            )
            self._check_current(generation)

            self._options = options
            self._results = new_results
            self._groups = new_groups
            self._state = RoundState.FAILED if arbiter_error else RoundState.COMPLETED
            record = self._record("resolve", summary, arbiter_error)
            self._runs.append(record)
            logger.info("Resolve round %d complete: %d stance groups", self._round_index, len(new_groups))
            return TurnResult(message=f"Resolve round {self._round_index} of {self._max_rounds}", run=record)
        except Exception:
            if generation == self._generation:
                self._state = RoundState.FAILED
            raise
        finally:
            if generation == self._generation:
                self._in_flight = False
