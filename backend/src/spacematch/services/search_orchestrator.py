"""Search Orchestrator: runs one conversational turn end to end.

Pipeline per turn:

1. Restore state (argument, caller ``fullState``, or fresh)
2. Append the user message
3. Entity classification (locked once established)
4. Apply the answer to a pending number clarification
5. Reference resolution and bare-number disambiguation
6. Requirement Extractor (LLM), skipped for single-token confirmations
7. Merge, then deterministic back-fill of missing critical fields
8. Semantic context update
9. Completeness → one follow-up question, a ranked search (brand), or a
   redirect-ready summary (owner)
10. Append the assistant message and serialize state
"""

import logging
from dataclasses import dataclass, field

from spacematch.agents.message_interpreter import interpret_message, requirements_payload
from spacematch.agents.reply_templates import get_template, render_matches, render_owner_summary
from spacematch.agents.requirement_extractor import RequirementExtractor
from spacematch.domain.enums import (
    ClarificationPriority,
    ClassificationResult,
    ConversationPhase,
    CurrencyFormat,
    EntityType,
    MessageRole,
    NumberInterpretation,
)
from spacematch.domain.errors import (
    ClassificationAmbiguous,
    DisambiguationNeeded,
    MissingCriticalField,
    SearchBoundaryFailure,
)
from spacematch.domain.requirements import BrandRequirements, Budget, RentRange, to_payload
from spacematch.domain.schemas import (
    ListingFilters,
    MatchSummary,
    PendingClarificationOut,
    ScoredMatch,
    SearchTurnRequest,
    SearchTurnResponse,
)
from spacematch.domain.state import Assumption, ConversationState
from spacematch.services import completeness
from spacematch.services.conversation_state import (
    add_message,
    add_pending_clarification,
    build_transcript,
    create_conversation_state,
    deserialize_state,
    establish_identity,
    get_current_requirements,
    record_search,
    resolve_pending_clarification,
    serialize_state,
    update_requirements,
    update_semantic_context,
    update_user_profile,
)
from spacematch.services.disambiguation import (
    DisambiguationResult,
    apply_reference_resolution,
    determine_topic,
    disambiguate_number,
    extract_entities,
    find_bare_number,
    generate_clarification_question,
    pick_option,
)
from spacematch.services.entity_classifier import (
    CLARIFICATION_PROMPT,
    Classification,
    classify_with_evidence,
    is_clarification_prompt,
    is_confirmation_reply,
    parse_transcript,
)
from spacematch.services.listing_source import ListingSource
from spacematch.services.match_scorer import average_score, rank_matches

logger = logging.getLogger(__name__)

# Listing-store names for extracted property types
PROPERTY_TYPE_FILTERS = {
    "retail_shop": "retail",
    "restaurant_space": "restaurant",
    "qsr": "qsr",
    "kiosk": "kiosk",
    "office": "office",
}

# Payload keys the interpreter may back-fill, per missing critical field
BACKFILL_KEYS = {
    EntityType.BRAND: {"area": "area", "location": "location", "budget": "budget"},
    EntityType.OWNER: {"property_area": "property", "location": "location", "rent": "rentExpectations"},
}

# Confidence recorded for fields filled in by the regex interpreter
BACKFILL_CONFIDENCE = 0.7
# Disambiguations below this are kept as assumptions to verify later
ASSUMPTION_THRESHOLD = 0.9
# An extracted brand area below this, with no range, may really be a budget
SMALL_AREA_LIMIT = 100
# Spread of the rent range built around a single amount
RENT_SPREAD = 0.1

BASICS_COLLECTED = (
    "Great! I have the basics. Would you like to share any specific requirements "
    "like parking, footfall, or lease duration?"
)


@dataclass
class TurnOutcome:
    """Response for the caller plus the state to persist.

    ``phases`` is the path the turn took; it always ends in ``RESPONDING``
    and ``response.phase`` is the step before it.
    """
    response: SearchTurnResponse
    state: ConversationState
    phases: tuple[ConversationPhase, ...] = ()


@dataclass
class _Turn:
    """Working values threaded through one turn."""
    query: str
    rewritten: str
    extraction_failed: bool = False
    clarification_resolved: bool = False
    # The utterance answered the brand-or-owner question and carries nothing else
    identity_answer: bool = False
    disambiguated: DisambiguationResult | None = None
    assumptions: list[Assumption] = field(default_factory=list)


def build_filters(brand: BrandRequirements) -> ListingFilters:
    """Listing search filters from brand requirements."""
    property_type = None
    if brand.property_type and brand.property_type.primary:
        primary = brand.property_type.primary
        property_type = PROPERTY_TYPE_FILTERS.get(primary, primary)

    rent = brand.budget.monthly_rent if brand.budget else None
    return ListingFilters(
        city=brand.location.city if brand.location else None,
        property_type=property_type,
        min_price=rent.min if rent else None,
        max_price=rent.max if rent else None,
        min_size=brand.area.min if brand.area else None,
        max_size=brand.area.max if brand.area else None,
    )


class SearchOrchestrator:
    """Coordinates classifier, disambiguation, extraction and scoring."""

    def __init__(self, extractor: RequirementExtractor, listing_source: ListingSource):
        self.extractor = extractor
        self.listing_source = listing_source

    async def process_turn(
        self,
        request: SearchTurnRequest,
        state: ConversationState | None = None,
    ) -> SearchTurnResponse:
        return (await self.run_turn(request, state)).response

    async def run_turn(
        self,
        request: SearchTurnRequest,
        state: ConversationState | None = None,
    ) -> TurnOutcome:
        state = self._restore_state(request, state)
        prior_history = build_transcript(state) or (request.conversation_history or "")

        query = request.query.strip()
        state = add_message(state, MessageRole.USER, query)
        turn = _Turn(query=query, rewritten=query)

        # ── Entity classification ──
        try:
            state = self._classify(state, turn, prior_history)
        except ClassificationAmbiguous:
            return self._respond(state, CLARIFICATION_PROMPT, ConversationPhase.NEEDS_ENTITY_TYPE)

        entity_type = state.entity_identity.type

        # ── Pending clarification / disambiguation ──
        if not turn.identity_answer:
            state = self._apply_pending_clarification(state, turn)
            try:
                state = self._disambiguate(state, turn)
            except DisambiguationNeeded as exc:
                return self._ask_number_clarification(state, turn, exc)

        # ── Extraction + merge ──
        if turn.clarification_resolved or not is_confirmation_reply(query):
            state = await self._extract(state, turn, entity_type)
        state = self._backfill(state, turn, entity_type)

        # ── Semantic context ──
        topic = determine_topic(turn.rewritten, state.semantic_context.current_topic)
        state = update_semantic_context(
            state,
            topic,
            entities=extract_entities(turn.rewritten, state),
            assumptions=turn.assumptions,
        )

        # ── Completeness ──
        try:
            completeness.require_complete(state)
        except MissingCriticalField as exc:
            return self._ask_follow_up(state, turn, exc.field)

        if entity_type == EntityType.OWNER:
            return self._redirect(state)
        if not completeness.is_ready_to_search(state):
            return self._respond(state, BASICS_COLLECTED, ConversationPhase.COLLECTING_REQUIREMENTS)
        return await self._search(state, turn)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _restore_state(self, request: SearchTurnRequest, state: ConversationState | None) -> ConversationState:
        context = request.context
        if state is None:
            if context and context.full_state:
                state = deserialize_state(context.full_state)
            else:
                state = create_conversation_state(user_id=request.user_id)

        declared = request.entity_type if request.entity_type != "auto" else None
        if context and context.confirmed_entity_type:
            declared = context.confirmed_entity_type.value
        if declared and state.entity_identity.type is None:
            state = establish_identity(state, declared, 1.0, "declared by caller", user_confirmed=True)

        # Callers that only carry extracted requirements (no full state)
        if context and context.extracted_requirements and get_current_requirements(state) is None:
            state = update_requirements(state, context.extracted_requirements)
        return state

    def _classify(self, state: ConversationState, turn: _Turn, prior_history: str) -> ConversationState:
        """Establish identity if needed; raise ``ClassificationAmbiguous`` if we can't."""
        if state.entity_identity.type is not None:
            return state

        query = turn.query
        history = f"{prior_history}\nUser: {query}" if prior_history else f"User: {query}"
        found: Classification = classify_with_evidence(query, conversation_history=history)

        if found.result == ClassificationResult.NEEDS_CLARIFICATION:
            last_assistant = next(
                (text for speaker, text in reversed(parse_transcript(prior_history)) if speaker == "assistant"), "",
            )
            if not is_clarification_prompt(last_assistant):
                raise ClassificationAmbiguous(query)
            # Already asked once: last try on the bare utterance
            found = classify_with_evidence(query)
            if found.result == ClassificationResult.NEEDS_CLARIFICATION:
                raise ClassificationAmbiguous(query)

        turn.identity_answer = found.user_confirmed and is_confirmation_reply(query)
        return establish_identity(state, found.result.value, found.confidence, found.evidence, found.user_confirmed)

    def _apply_pending_clarification(self, state: ConversationState, turn: _Turn) -> ConversationState:
        if not state.pending_clarifications:
            return state
        pending = state.pending_clarifications[-1]
        choice = pick_option(turn.query, pending.possible_values or [])
        state = resolve_pending_clarification(state, pending.id, turn.query)
        if choice:
            logger.info("[orchestrator] Clarification %s answered: %s", pending.id, choice)
            turn.rewritten = choice
            turn.clarification_resolved = True
        return state

    def _disambiguate(self, state: ConversationState, turn: _Turn) -> ConversationState:
        if turn.clarification_resolved:
            return state

        rewritten, references = apply_reference_resolution(turn.rewritten, state)
        if references:
            state = update_semantic_context(state, state.semantic_context.current_topic, references=references)
        turn.rewritten = rewritten

        number = find_bare_number(rewritten)
        if number is None:
            return state

        result = disambiguate_number(number, state, utterance=rewritten)
        if result.needs_clarification:
            raise DisambiguationNeeded(number, result.clarification_options)

        turn.disambiguated = result
        turn.rewritten = result.phrasing
        if result.confidence < ASSUMPTION_THRESHOLD:
            turn.assumptions.append(Assumption(
                field=result.type.value, value=result.value, confidence=result.confidence, should_verify=True,
            ))
        logger.info("[orchestrator] Read %r as %r (%s)", turn.query, turn.rewritten, result.reason)
        return state

    async def _extract(self, state: ConversationState, turn: _Turn, entity_type: EntityType) -> ConversationState:
        result = await self.extractor.extract(turn.rewritten, build_transcript(state), entity_type)
        if not result.ok:
            turn.extraction_failed = True
            logger.warning("[orchestrator] Keeping prior requirements after extraction failure: %s", result.error)
            return state
        requirements = result.requirements
        if entity_type == EntityType.BRAND:
            requirements = self._recheck_small_area(state, turn, requirements)
        return update_requirements(state, requirements)

    def _recheck_small_area(
        self, state: ConversationState, turn: _Turn, brand: BrandRequirements,
    ) -> BrandRequirements:
        """Move a tiny extracted ``area.preferred`` to the budget when it reads as money."""
        area = brand.area
        if (
            area is None
            or area.preferred is None
            or area.preferred >= SMALL_AREA_LIMIT
            or area.min is not None
            or area.max is not None
        ):
            return brand

        reading = disambiguate_number(area.preferred, state, utterance=turn.rewritten)
        if reading.type != NumberInterpretation.CURRENCY:
            return brand

        logger.info("[orchestrator] Extracted area %g read as rent ₹%.0f (%s)", area.preferred, reading.value, reading.reason)
        update: dict = {"area": None}
        if brand.budget is None or brand.budget.monthly_rent is None:
            rent = RentRange(
                min=round(reading.value * (1 - RENT_SPREAD)),
                max=round(reading.value * (1 + RENT_SPREAD)),
                currency="INR",
            )
            update["budget"] = (brand.budget or Budget()).model_copy(update={"monthly_rent": rent})
        turn.assumptions.append(Assumption(
            field=NumberInterpretation.CURRENCY.value,
            value=reading.value,
            confidence=reading.confidence,
            should_verify=reading.confidence < ASSUMPTION_THRESHOLD,
        ))
        return brand.model_copy(update=update)

    def _backfill(self, state: ConversationState, turn: _Turn, entity_type: EntityType) -> ConversationState:
        """Fill still-missing critical groups from the regex interpreter."""
        interpretation = interpret_message(turn.rewritten, state.semantic_context.current_topic.value)
        if interpretation.currency_format:
            state = update_user_profile(state, currency_format=CurrencyFormat(interpretation.currency_format))

        payload = requirements_payload(interpretation, entity_type.value)
        if turn.disambiguated and turn.disambiguated.type == NumberInterpretation.DEPOSIT:
            payload.pop("budget", None)
            payload.pop("rentExpectations", None)

        current = get_current_requirements(state)
        keys = {BACKFILL_KEYS[entity_type][f] for f in completeness.missing_critical_fields(state)}
        if entity_type == EntityType.BRAND and (current is None or current.property_type is None):
            keys.add("propertyType")
        if entity_type == EntityType.OWNER and (current is None or current.property is None or not current.property.type):
            keys.add("property")

        backfill = {k: v for k, v in payload.items() if k in keys}
        if not backfill:
            return state
        logger.info("[orchestrator] Back-filling %s from message interpreter", sorted(backfill))
        return update_requirements(state, backfill, field_confidence={k: BACKFILL_CONFIDENCE for k in backfill})

    def _ask_number_clarification(
        self, state: ConversationState, turn: _Turn, exc: DisambiguationNeeded,
    ) -> TurnOutcome:
        question = generate_clarification_question(exc.raw_number, exc.options)
        state = add_pending_clarification(
            state,
            question=question,
            priority=ClarificationPriority.CRITICAL,
            field="number",
            context=turn.query,
            possible_values=exc.options,
        )
        pending = state.pending_clarifications[-1]
        outcome = self._respond(state, question, ConversationPhase.COLLECTING_REQUIREMENTS)
        outcome.response.pending_clarification = PendingClarificationOut(
            id=pending.id, question=question, field=pending.field, options=exc.options,
        )
        return outcome

    def _ask_follow_up(self, state: ConversationState, turn: _Turn, missing_field: str) -> TurnOutcome:
        question = completeness.next_follow_up_question(state) or get_template("unknown")
        state = update_semantic_context(state, completeness.topic_for_field(missing_field))
        if turn.extraction_failed:
            message = get_template("extraction_retry", question=question)
        else:
            message = question
        return self._respond(state, message, ConversationPhase.COLLECTING_REQUIREMENTS)

    def _redirect(self, state: ConversationState) -> TurnOutcome:
        owner = get_current_requirements(state)
        outcome = self._respond(state, render_owner_summary(owner), ConversationPhase.READY_TO_REDIRECT)
        outcome.response.ready_to_redirect = True
        outcome.response.collected_details = to_payload(owner)
        return outcome

    async def _search(self, state: ConversationState, turn: _Turn) -> TurnOutcome:
        brand = get_current_requirements(state)
        filters = build_filters(brand)
        try:
            listings = await self.listing_source.search(filters)
        except SearchBoundaryFailure as exc:
            logger.error("[orchestrator] Listing search failed: %s", exc)
            return self._respond(state, get_template("search_error"), ConversationPhase.READY_TO_SEARCH)

        matches = rank_matches(listings, brand, EntityType.BRAND)
        state = record_search(
            state, turn.query, [m.listing_id for m in matches], filters.model_dump(by_alias=True, exclude_none=True),
        )
        logger.info("[orchestrator] %d candidates, top score %s", len(listings), matches[0].final_score if matches else "-")
        return self._respond(
            state, render_matches(matches), ConversationPhase.READY_TO_SEARCH, matches=matches, total=len(listings),
        )

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------

    def _respond(
        self,
        state: ConversationState,
        message: str,
        phase: ConversationPhase,
        matches: list[ScoredMatch] | None = None,
        total: int = 0,
    ) -> TurnOutcome:
        matches = matches or []
        state = add_message(state, MessageRole.ASSISTANT, message)
        response = SearchTurnResponse(
            message=message,
            matches=matches,
            summary=MatchSummary(
                total_matches=total,
                showing_top=len(matches),
                average_match_score=average_score(matches),
                search_completeness=completeness.completion_percentage(state),
            ),
            extracted_requirements=to_payload(get_current_requirements(state)),
            confirmed_entity_type=state.entity_identity.type,
            full_state=serialize_state(state),
            phase=phase,
        )
        phases = (phase, ConversationPhase.RESPONDING)
        if state.entity_identity.type is not None and phase != ConversationPhase.COLLECTING_REQUIREMENTS:
            phases = (ConversationPhase.COLLECTING_REQUIREMENTS, *phases)
        logger.debug("[orchestrator] Turn %d phases %s", state.conversation_length, [p.value for p in phases])
        return TurnOutcome(response=response, state=state, phases=phases)
