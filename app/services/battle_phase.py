import random
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.enums import AttackOutcome, BattleSide, BattleStatus
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationFailedError
from app.core.type_advantage import get_type_multiplier
from app.models.battle import Battle, BattlePhaseLog
from app.models.card import Card
from app.models.user_card import UserCard
from app.schemas.battle import AttackResult, CardSelectionResult, CompletionSummary
from app.schemas.battle_session import TOTAL_PHASES, BattleSessionState, CombatCard, PhaseState
from app.services.ai_opponent import select_ai_card
from app.services.battle_completion import BattleCompletionService
from app.services.battle_session import BattleSessionStore, battle_locks
from app.services.deck_validation import DeckValidationService
from app.utils.push import push_event

STAT_VARIANCE_PERCENT = 5
MIN_DAMAGE = 10
SPEED_FATIGUE = 10


def _vary(base: int, rng: random.Random) -> int:
    variance = round(base * rng.randint(-STAT_VARIANCE_PERCENT, STAT_VARIANCE_PERCENT) / 100)
    return max(1, base + variance)


def project_combat_card(
    user_card: UserCard, card: Card, rng: random.Random | None = None
) -> CombatCard:
    """Snapshot a collection card for one phase, each stat shifted independently by up to ±5%."""
    rng = rng or random.Random()
    return CombatCard(
        user_card_id=user_card.id,
        name=card.name,
        card_type_id=card.card_type_id,
        speed=_vary(card.speed, rng),
        attack=_vary(card.attack, rng),
        defense=_vary(card.defense, rng),
        original_speed=card.speed,
        original_attack=card.attack,
        original_defense=card.defense,
    )


def cards_in_play(phase: PhaseState, side: BattleSide) -> tuple[CombatCard, CombatCard]:
    """The card of `side` and the card facing it."""
    own, other = phase.card_for(side), phase.card_for(side.opponent)
    if own is None or other is None:
        msg = "Both players must select a card before attacking"
        raise ValidationFailedError(msg)
    return own, other


def determine_initial_attacker(phase: PhaseState) -> BattleSide:
    """Higher projected attack opens the phase; ties go to player 1."""
    player1_card, player2_card = cards_in_play(phase, BattleSide.PLAYER1)
    if player1_card.attack >= player2_card.attack:
        return BattleSide.PLAYER1
    return BattleSide.PLAYER2


def calculate_damage(attacker: CombatCard, defender: CombatCard, *, apply_type_advantage: bool) -> int:
    damage = max(attacker.attack - defender.defense, MIN_DAMAGE)
    if apply_type_advantage:
        damage = round(damage * get_type_multiplier(attacker.card_type_id, defender.card_type_id))
    return damage


def resolve_attack(
    phase: PhaseState, *, apply_type_advantage: bool = False
) -> tuple[AttackOutcome, int | None, bool]:
    """Play one attack of the stored attacker against the other card.

    A faster defender makes the attack miss and takes over as attacker. A hit
    deals damage to the defender's defense and tires the attacker by 10 speed.
    Returns (outcome, damage, defender_defeated); `phase` is mutated in place.
    """
    if phase.attacker is None or not phase.is_ready:
        msg = "Both players must select a card before attacking"
        raise ValidationFailedError(msg)

    attacker, defender = cards_in_play(phase, phase.attacker)

    if defender.speed > attacker.speed:
        phase.attacker = phase.attacker.opponent
        return AttackOutcome.MISSED, None, False

    damage = calculate_damage(attacker, defender, apply_type_advantage=apply_type_advantage)
    defender.defense -= damage
    attacker.speed -= SPEED_FATIGUE
    return AttackOutcome.HIT, damage, defender.defense <= 0


def build_phase_log(battle: Battle, phase: PhaseState, winner: BattleSide) -> BattlePhaseLog:
    winner_card, loser_card = cards_in_play(phase, winner)
    return BattlePhaseLog(
        battle_id=battle.id,
        mode=battle.mode,
        phase_number=phase.phase_number,
        winner_card_id=winner_card.user_card_id,
        winner_start_speed=winner_card.original_speed,
        winner_start_attack=winner_card.original_attack,
        winner_start_defense=winner_card.original_defense,
        winner_end_speed=winner_card.speed,
        winner_end_attack=winner_card.attack,
        winner_end_defense=winner_card.defense,
        loser_card_id=loser_card.user_card_id,
        loser_start_speed=loser_card.original_speed,
        loser_start_attack=loser_card.original_attack,
        loser_start_defense=loser_card.original_defense,
        loser_end_speed=loser_card.speed,
        loser_end_attack=loser_card.attack,
        loser_end_defense=loser_card.defense,
    )


class BattlePhaseService:
    """Card selection and attack resolution for in-progress battles.

    Every call holds the battle's lock for its whole read-modify-write cycle and
    commits its changes as one unit.
    """

    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db)],
        session_store: Annotated[BattleSessionStore, Depends()],
        deck_service: Annotated[DeckValidationService, Depends()],
        completion_service: Annotated[BattleCompletionService, Depends()],
    ) -> None:
        self.db = db
        self.session_store = session_store
        self.deck_service = deck_service
        self.completion_service = completion_service
        self.rng = random.Random()

    async def _load_battle(
        self, battle_id: int, player_id: int
    ) -> tuple[Battle, BattleSessionState, BattleSide]:
        battle = await self.db.get(Battle, battle_id, populate_existing=True)
        if battle is None or not battle.is_participant(player_id):
            raise NotFoundError
        if battle.status != BattleStatus.IN_PROGRESS:
            msg = f"Battle is not in progress. Current status: {battle.status}"
            raise ValidationFailedError(msg)

        state = await self.session_store.load(battle_id, for_update=True)
        if state is None:
            raise NotFoundError

        side = state.side_of(player_id)
        if side is None:
            raise NotFoundError
        return battle, state, side

    async def _get_collection_card(self, user_card_id: int) -> tuple[UserCard, Card]:
        result = await self.db.exec(
            select(UserCard, Card)
            .join(Card, col(UserCard.card_id) == Card.id)
            .where(UserCard.id == user_card_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Card not found")
        return row

    async def _select_ai_card(self, state: BattleSessionState, phase: PhaseState) -> CombatCard | None:
        if state.player2_deck_id is None:
            return None
        rows = await self.deck_service.get_deck_cards(state.player2_deck_id)
        deck = [(user_card, card) for _, user_card, card, _ in rows]
        choice = select_ai_card(
            state, phase.phase_number, phase.player1_card, deck, rng=self.rng
        )
        if choice is None:
            return None
        return project_combat_card(*choice, rng=self.rng)

    async def select_card_for_phase(
        self, battle_id: int, player_id: int, user_card_id: int
    ) -> CardSelectionResult:
        """Lock in the caller's card for the current phase.

        In AI battles the AI answers with its own pick straight away. Once both
        sides have a card the opening attacker is fixed.
        """
        async with battle_locks.hold(battle_id):
            battle, state, side = await self._load_battle(battle_id, player_id)

            if user_card_id not in state.card_ids(side):
                raise NotFoundError("Card not found")

            phase = state.current_phase_state or PhaseState(phase_number=state.current_phase)
            if phase.is_ready:
                msg = f"Cards for phase {phase.phase_number} are already locked in"
                raise ValidationFailedError(msg)

            user_card, card = await self._get_collection_card(user_card_id)
            combat_card = project_combat_card(user_card, card, rng=self.rng)
            phase.set_card(side, combat_card)

            opponent_card_name = None
            if battle.is_ai_battle and side is BattleSide.PLAYER1 and phase.player2_card is None:
                ai_card = await self._select_ai_card(state, phase)
                if ai_card is None:
                    msg = "AI opponent has no cards left to play"
                    raise ValidationFailedError(msg)
                phase.player2_card = ai_card
                opponent_card_name = ai_card.name

            if phase.is_ready:
                phase.attacker = determine_initial_attacker(phase)

            state.current_phase_state = phase
            await self.session_store.save(state)
            await self.db.commit()

        logger.info(
            f"Battle {battle_id} phase {phase.phase_number}: {side} selected {combat_card.name}"
        )
        push_event(
            (battle.player1_id, battle.player2_id),
            "battle_phase_update",
            {"battle_id": battle_id, "phase": phase.phase_number, "ready": phase.is_ready},
        )
        return CardSelectionResult(
            phase=phase.phase_number,
            card_name=combat_card.name,
            ready_for_battle=phase.is_ready,
            opponent_card_name=opponent_card_name,
        )

    async def execute_attack(self, battle_id: int, player_id: int) -> AttackResult:
        """Resolve one attack by whichever side currently holds the attack.

        Turn order is carried by the phase's attacker flag; unless
        `settings.enforce_turn_order` is on, either participant may trigger it.
        """
        completion: CompletionSummary | None = None
        async with battle_locks.hold(battle_id):
            battle, state, side = await self._load_battle(battle_id, player_id)

            phase = state.current_phase_state
            if phase is None or not phase.is_ready or phase.attacker is None:
                msg = "No active phase: both players must select a card first"
                raise ValidationFailedError(msg)

            if settings.enforce_turn_order and not battle.is_ai_battle and side != phase.attacker:
                msg = "It is not your turn to attack"
                raise ForbiddenError(msg)

            attacker_side = phase.attacker
            outcome, damage, defeated = resolve_attack(
                phase, apply_type_advantage=settings.apply_type_advantage
            )
            attacker_card, defender_card = cards_in_play(phase, attacker_side)

            if outcome is AttackOutcome.MISSED:
                message = "Attack missed! Defender is faster and counters."
            else:
                message = f"Attack hit for {damage} damage!"

            if defeated:
                message += " Card defeated!"
                state.award_phase(attacker_side)
                self.db.add(build_phase_log(battle, phase, attacker_side))
                logger.info(
                    f"Battle {battle_id} phase {phase.phase_number} won by {attacker_side} "
                    f"({state.player1_score}-{state.player2_score})"
                )

                if state.phases_resolved >= TOTAL_PHASES:
                    state.current_phase_state = phase
                    completion = await self.completion_service.complete_battle(battle, state)
                else:
                    state.current_phase += 1
                    state.current_phase_state = None
            else:
                state.current_phase_state = phase

            await self.session_store.save(state)
            await self.db.commit()

        result = AttackResult(
            attack_result=outcome,
            message=message,
            attacker=attacker_side,
            damage=damage,
            attacker_card=attacker_card,
            defender_card=defender_card,
            phase_complete=defeated,
            phase_winner=attacker_side if defeated else None,
            battle_complete=completion is not None,
            current_phase=state.current_phase,
            player1_score=state.player1_score,
            player2_score=state.player2_score,
            winner_id=completion.winner_id if completion else None,
        )

        participants = (battle.player1_id, battle.player2_id)
        if completion is not None:
            battle_locks.discard(battle_id)
            push_event(
                participants,
                "battle_ended",
                {
                    "battle_id": battle_id,
                    "winner_user_id": completion.winner_id,
                    "player1_score": completion.player1_score,
                    "player2_score": completion.player2_score,
                },
            )
        else:
            push_event(
                participants,
                "battle_phase_update",
                {"battle_id": battle_id, "phase": state.current_phase, "attack": result.model_dump(mode="json")},
            )
        return result
