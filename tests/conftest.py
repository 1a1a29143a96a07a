import os

os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")

import random
from collections.abc import AsyncGenerator, Sequence
from dataclasses import dataclass

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.enums import AccountType, BattleMode, BeastType, FriendshipStatus
from app.models import (
    BattleDeck,
    BattleDeckCard,
    Card,
    CardType,
    Friendship,
    ParentControl,
    Player,
    UserCard,
)
from app.schemas.battle import AttackResult
from app.services.ai_opponent import AIOpponentService
from app.services.battle import BattleService
from app.services.battle_completion import BattleCompletionService
from app.services.battle_invitation import BattleInvitationService
from app.services.battle_phase import BattlePhaseService
from app.services.battle_session import BattleSessionStore, battle_locks
from app.services.battle_stats import BattleStatsService
from app.services.deck_validation import DeckValidationService
from app.services.notification import NotificationService

TRAINER_TYPE_ID = 9


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_battle_locks() -> None:
    # Locks outliving a test would be bound to a closed event loop
    battle_locks._locks.clear()  # noqa: SLF001


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    async with AsyncSession(engine, autoflush=False, expire_on_commit=False) as session:
        yield session


class Factory:
    """Builds players, cards and decks directly in the test database."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._card_seq = 0

    async def _save[T](self, obj: T) -> T:
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def card_types(self) -> None:
        for beast_type in BeastType:
            self.db.add(CardType(id=beast_type.value, name=beast_type.name.title()))
        self.db.add(CardType(id=TRAINER_TYPE_ID, name="Trainer", is_battle_card=False))
        await self.db.commit()

    async def player(
        self,
        username: str,
        *,
        email: str | None = None,
        account_type: AccountType = AccountType.STANDARD,
    ) -> Player:
        return await self._save(Player(username=username, email=email, account_type=account_type))

    async def card(
        self,
        card_type_id: int = BeastType.IGNEOUS,
        *,
        speed: int = 50,
        attack: int = 60,
        defense: int = 40,
        name: str | None = None,
    ) -> Card:
        self._card_seq += 1
        return await self._save(
            Card(
                name=name or f"Beast {self._card_seq}",
                card_type_id=card_type_id,
                speed=speed,
                attack=attack,
                defense=defense,
            )
        )

    async def user_card(self, owner: Player, card: Card, **kwargs: bool) -> UserCard:
        return await self._save(UserCard(owner_id=owner.id, card_id=card.id, **kwargs))

    async def deck(
        self, owner: Player, cards: Sequence[Card] | None = None, *, name: str = "Deck"
    ) -> tuple[BattleDeck, list[UserCard]]:
        """A deck of fresh collection copies of `cards` (five Igneous cards by default)."""
        if cards is None:
            cards = [await self.card() for _ in range(5)]
        user_cards = [await self.user_card(owner, card) for card in cards]
        deck = await self._save(BattleDeck(owner_id=owner.id, name=name))
        for position, user_card in enumerate(user_cards, start=1):
            self.db.add(
                BattleDeckCard(deck_id=deck.id, user_card_id=user_card.id, position=position)
            )
        await self.db.commit()
        return deck, user_cards

    async def friendship(
        self, requester: Player, recipient: Player, status: FriendshipStatus = FriendshipStatus.APPROVED
    ) -> Friendship:
        return await self._save(
            Friendship(requester_id=requester.id, recipient_id=recipient.id, status=status)
        )

    async def parent_control(
        self, child: Player, *, allow_competitive: bool = False, allow_ultimate: bool = False
    ) -> ParentControl:
        return await self._save(
            ParentControl(
                child_id=child.id,
                allow_competitive=allow_competitive,
                allow_ultimate=allow_ultimate,
            )
        )


@pytest.fixture
async def factory(db: AsyncSession) -> Factory:
    factory = Factory(db)
    await factory.card_types()
    return factory


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
async def ai_player(db: AsyncSession, factory: Factory) -> Player:
    return await AIOpponentService(db).ensure_ai_player()


@pytest.fixture
def session_store(db: AsyncSession) -> BattleSessionStore:
    return BattleSessionStore(db)


@pytest.fixture
def deck_service(db: AsyncSession) -> DeckValidationService:
    return DeckValidationService(db)


@pytest.fixture
def stats_service(db: AsyncSession) -> BattleStatsService:
    return BattleStatsService(db)


@pytest.fixture
def invitation_service(
    db: AsyncSession, deck_service: DeckValidationService, session_store: BattleSessionStore
) -> BattleInvitationService:
    return BattleInvitationService(
        db, deck_service, AIOpponentService(db), session_store, NotificationService(db)
    )


@pytest.fixture
def completion_service(
    db: AsyncSession,
    stats_service: BattleStatsService,
    session_store: BattleSessionStore,
    rng: random.Random,
) -> BattleCompletionService:
    service = BattleCompletionService(db, stats_service, session_store)
    service.rng = rng
    return service


@pytest.fixture
def phase_service(
    db: AsyncSession,
    session_store: BattleSessionStore,
    deck_service: DeckValidationService,
    completion_service: BattleCompletionService,
    rng: random.Random,
) -> BattlePhaseService:
    service = BattlePhaseService(db, session_store, deck_service, completion_service)
    service.rng = rng
    return service


@pytest.fixture
def battle_service(db: AsyncSession, session_store: BattleSessionStore) -> BattleService:
    return BattleService(db, session_store)


@dataclass
class FriendBattle:
    battle_id: int
    challenger: Player
    opponent: Player
    challenger_cards: list[UserCard]
    opponent_cards: list[UserCard]


async def start_friend_battle(
    factory: Factory,
    service: BattleInvitationService,
    mode: BattleMode = BattleMode.FRIENDLY,
) -> FriendBattle:
    """A battle in progress where every challenger card outclasses the opponent's."""
    alice = await factory.player("alice")
    bob = await factory.player("bob")
    await factory.friendship(alice, bob)

    strong = [await factory.card(speed=100, attack=100, defense=50) for _ in range(5)]
    weak = [await factory.card(speed=10, attack=20, defense=30) for _ in range(5)]
    alice_deck, alice_cards = await factory.deck(alice, strong)
    bob_deck, bob_cards = await factory.deck(bob, weak)

    summary = await service.create_friend_battle(alice.id, bob.id, alice_deck.id, mode)
    result = await service.accept_invitation(summary.battle_id, bob.id, bob_deck.id)
    assert result.success
    return FriendBattle(summary.battle_id, alice, bob, alice_cards, bob_cards)


async def play_out(service: BattlePhaseService, battle: FriendBattle) -> AttackResult:
    """Play all five phases, each player using their deck in order."""
    result: AttackResult | None = None
    for phase in range(5):
        await service.select_card_for_phase(
            battle.battle_id, battle.challenger.id, battle.challenger_cards[phase].id
        )
        await service.select_card_for_phase(
            battle.battle_id, battle.opponent.id, battle.opponent_cards[phase].id
        )
        for _ in range(100):
            result = await service.execute_attack(battle.battle_id, battle.challenger.id)
            if result.phase_complete:
                break
    assert result is not None
    return result


def build_phase_service(db: AsyncSession, rng: random.Random) -> BattlePhaseService:
    """A phase service with its whole dependency chain bound to `db`."""
    session_store = BattleSessionStore(db)
    completion_service = BattleCompletionService(db, BattleStatsService(db), session_store)
    completion_service.rng = rng
    service = BattlePhaseService(db, session_store, DeckValidationService(db), completion_service)
    service.rng = rng
    return service


def build_invitation_service(db: AsyncSession) -> BattleInvitationService:
    return BattleInvitationService(
        db,
        DeckValidationService(db),
        AIOpponentService(db),
        BattleSessionStore(db),
        NotificationService(db),
    )
