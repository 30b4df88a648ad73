"""
Playoff pool bracket: game generation, advancement, pick checks, scoring and
standings.

Wild card and divisional games are generated from seeding once their teams
are known. Conference and Super Bowl games start as placeholders whose teams
are ``TeamSource`` references; a reference resolves to the actual winner once
the earlier game is complete, or, for a participant filling out a bracket, to
the winner that participant predicted.
"""
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict

from survivor_pool.core.errors import (
    DeadlinePassedError,
    InvalidMarginError,
    MatchupUndeterminedError,
    RuleViolation,
    TeamNotInGameError,
    UnknownGameError,
    WeekNotOpenError,
)
from survivor_pool.core.types import (
    Member,
    PlayoffBracketPick,
    PlayoffBracketResult,
    PlayoffGame,
    PlayoffRound,
    PlayoffSeeding,
    PlayoffStage,
    Series,
    TeamSource,
)

WINNER_POINTS: dict[str, int] = {
    "wild_card": 5,
    "divisional": 7,
    "conference": 9,
    "super_bowl": 11,
}
MAX_MARGIN_POINTS = 5

ROUND_ORDER: tuple[PlayoffRound, ...] = ("wild_card", "divisional", "conference", "super_bowl")
STAGE_ROUNDS: dict[str, tuple[PlayoffRound, ...]] = {
    "stage_1": ("wild_card",),
    "stage_2": ("divisional", "conference", "super_bowl"),
}
ROUND_DISPLAY_NAMES = {
    "wild_card": "Wild Card",
    "divisional": "Divisional",
    "conference": "Conference",
    "super_bowl": "Super Bowl",
}

PlayoffPickOutcome = Union[list[PlayoffBracketPick], RuleViolation]


class GameScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    winner_points: int = 0
    margin_points: int = 0
    total: int = 0


class StandingEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    member_id: str
    user_id: str
    user_name: str
    total_points: int
    possible_points: int
    rank: int


class PlayoffPoolStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    member: Optional[Member] = None
    stage: PlayoffStage = "stage_1"
    stage_game_count: int = 0
    stage_picks_saved: int = 0
    stage_submitted: bool = False
    total_points: int = 0
    possible_points: int = 0
    rank: Optional[int] = None
    results: list[PlayoffBracketResult] = []


# --- Generation ---

def _conference_seeds(seeding: PlayoffSeeding) -> list[tuple[str, list[str], int]]:
    return [("AFC", seeding.afc, 0), ("NFC", seeding.nfc, 1)]


def generate_wild_card_games(seeding: PlayoffSeeding) -> list[PlayoffGame]:
    """#7 @ #2, #6 @ #3, #5 @ #4 in each conference; the #1 seed has a bye."""
    games = []
    for conference, seeds, index in _conference_seeds(seeding):
        for n, (away_seed, home_seed) in enumerate([(7, 2), (6, 3), (5, 4)], start=1):
            games.append(
                PlayoffGame(
                    id=f"wc-{conference.lower()}-{n}",
                    round="wild_card",
                    conference=conference,
                    game_number=index * 3 + n,
                    away_team_id=seeds[away_seed - 1],
                    home_team_id=seeds[home_seed - 1],
                )
            )
    return games


def generate_divisional_games(
    seeding: PlayoffSeeding,
    wild_card_winners: Mapping[str, Sequence[str]],
) -> list[PlayoffGame]:
    """The #1 seed hosts the lowest remaining seed, the other two survivors meet."""
    games = []
    for conference, seeds, index in _conference_seeds(seeding):
        winners = list(wild_card_winners[conference.lower()])
        if len(winners) != 3:
            raise ValueError(f"{conference} needs three wild card winners, got {len(winners)}")
        remaining = sorted([seeds[0], *winners], key=seeding.seed_of)
        games.append(
            PlayoffGame(
                id=f"div-{conference.lower()}-1",
                round="divisional",
                conference=conference,
                game_number=index * 2 + 1,
                away_team_id=remaining[3],
                home_team_id=remaining[0],
            )
        )
        games.append(
            PlayoffGame(
                id=f"div-{conference.lower()}-2",
                round="divisional",
                conference=conference,
                game_number=index * 2 + 2,
                away_team_id=remaining[2],
                home_team_id=remaining[1],
            )
        )
    return games


def generate_conference_games(
    divisional_winners: Mapping[str, Sequence[str]],
    seeding: PlayoffSeeding,
) -> list[PlayoffGame]:
    games = []
    for conference, _, index in _conference_seeds(seeding):
        teams = sorted(divisional_winners[conference.lower()], key=seeding.seed_of)
        games.append(
            PlayoffGame(
                id=f"conf-{conference.lower()}",
                round="conference",
                conference=conference,
                game_number=index + 1,
                away_team_id=teams[1],
                home_team_id=teams[0],
            )
        )
    return games


def generate_super_bowl(afc_champion: str, nfc_champion: str) -> PlayoffGame:
    # The AFC champion is the designated away team
    return PlayoffGame(
        id="super-bowl",
        round="super_bowl",
        conference="SUPER_BOWL",
        game_number=1,
        away_team_id=afc_champion,
        home_team_id=nfc_champion,
    )


def pending_conference_games() -> list[PlayoffGame]:
    return [
        PlayoffGame(
            id="conf-afc",
            round="conference",
            conference="AFC",
            game_number=1,
            away_source=TeamSource(round="divisional", game_number=2),
            home_source=TeamSource(round="divisional", game_number=1),
        ),
        PlayoffGame(
            id="conf-nfc",
            round="conference",
            conference="NFC",
            game_number=2,
            away_source=TeamSource(round="divisional", game_number=4),
            home_source=TeamSource(round="divisional", game_number=3),
        ),
    ]


def pending_super_bowl() -> PlayoffGame:
    return PlayoffGame(
        id="super-bowl",
        round="super_bowl",
        conference="SUPER_BOWL",
        game_number=1,
        away_source=TeamSource(round="conference", game_number=1),
        home_source=TeamSource(round="conference", game_number=2),
    )


def get_games_by_round(games: Iterable[PlayoffGame], round: PlayoffRound) -> list[PlayoffGame]:
    return [g for g in games if g.round == round]


def find_game(games: Iterable[PlayoffGame], round: PlayoffRound, game_number: int) -> Optional[PlayoffGame]:
    for game in games:
        if game.round == round and game.game_number == game_number:
            return game
    return None


def sort_games(games: Iterable[PlayoffGame]) -> list[PlayoffGame]:
    return sorted(games, key=lambda g: (ROUND_ORDER.index(g.round), g.game_number))


# --- Resolution ---

def _game_teams(
    game: PlayoffGame,
    games: Sequence[PlayoffGame],
    predicted: Optional[Mapping[str, str]],
) -> tuple[Optional[str], Optional[str]]:
    away = game.away_team_id or resolve_team(game.away_source, games, predicted)
    home = game.home_team_id or resolve_team(game.home_source, games, predicted)
    return away, home


def resolve_team(
    source: Optional[TeamSource],
    games: Sequence[PlayoffGame],
    predicted: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    if source is None:
        return None
    game = find_game(games, source.round, source.game_number)
    if game is None:
        return None

    if game.is_complete and game.winner_id:
        winner = game.winner_id
    elif predicted and predicted.get(game.id):
        winner = predicted[game.id]
    else:
        return None

    if source.is_winner:
        return winner
    away, home = _game_teams(game, games, predicted)
    return home if winner == away else away


def resolve_matchup(
    game: PlayoffGame,
    games: Sequence[PlayoffGame],
    seeding: Optional[PlayoffSeeding] = None,
    predicted: Optional[Mapping[str, str]] = None,
) -> Optional[tuple[str, str]]:
    """``(away, home)`` for a game, or ``None`` while a side is still undetermined."""
    away, home = _game_teams(game, games, predicted)
    if away is None or home is None:
        return None
    has_sources = game.away_source is not None or game.home_source is not None
    if has_sources and seeding is not None and game.round != "super_bowl":
        if seeding.seed_of(away) < seeding.seed_of(home):
            away, home = home, away
    return away, home


def _winners(games: Iterable[PlayoffGame], conference: str) -> list[str]:
    return [g.winner_id for g in games if g.conference == conference and g.winner_id]


def _round_complete(games: Sequence[PlayoffGame], round: PlayoffRound) -> bool:
    round_games = get_games_by_round(games, round)
    return bool(round_games) and all(g.is_complete and g.winner_id for g in round_games)


def advance_bracket(games: Sequence[PlayoffGame], seeding: PlayoffSeeding) -> list[PlayoffGame]:
    """Generate the next round and fill placeholder teams from completed games."""
    games = list(games)
    if not games:
        games = generate_wild_card_games(seeding)

    if _round_complete(games, "wild_card") and not get_games_by_round(games, "divisional"):
        wild_card = get_games_by_round(games, "wild_card")
        games.extend(
            generate_divisional_games(
                seeding,
                {"afc": _winners(wild_card, "AFC"), "nfc": _winners(wild_card, "NFC")},
            )
        )
    if get_games_by_round(games, "divisional"):
        if not get_games_by_round(games, "conference"):
            games.extend(pending_conference_games())
        if not get_games_by_round(games, "super_bowl"):
            games.append(pending_super_bowl())

    changed = True
    while changed:
        changed = False
        for i, game in enumerate(games):
            if game.away_team_id and game.home_team_id:
                continue
            matchup = resolve_matchup(game, games, seeding)
            if matchup is None:
                continue
            away, home = matchup
            games[i] = game.model_copy(update={"away_team_id": away, "home_team_id": home})
            changed = True

    return sort_games(games)


def record_game_result(game: PlayoffGame, away_score: int, home_score: int) -> PlayoffGame:
    if away_score == home_score:
        raise ValueError("Playoff games cannot end in a tie")
    if not (game.away_team_id and game.home_team_id):
        raise ValueError(f"Game {game.id} does not have both teams yet")
    winner = game.home_team_id if home_score > away_score else game.away_team_id
    return game.model_copy(
        update={
            "away_score": away_score,
            "home_score": home_score,
            "winner_id": winner,
            "is_complete": True,
        }
    )


# --- Picks ---

def validate_playoff_pick(
    game: PlayoffGame,
    games: Sequence[PlayoffGame],
    picked_winner_id: str,
    predicted_margin: int,
    seeding: Optional[PlayoffSeeding] = None,
    predicted: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
) -> Union[PlayoffBracketPick, RuleViolation]:
    if predicted_margin is None or predicted_margin <= 0:
        return InvalidMarginError(f"Margin for {game.id} must be greater than zero")
    if game.is_complete:
        return DeadlinePassedError(f"{game.id} has already been played")

    matchup = resolve_matchup(game, games, seeding, predicted)
    if matchup is None:
        return MatchupUndeterminedError(f"The teams for {game.id} are not known yet")
    if picked_winner_id not in matchup:
        return TeamNotInGameError(
            f"{picked_winner_id.upper()} is not playing in {game.id}",
            team_id=picked_winner_id,
        )

    return PlayoffBracketPick(
        game_id=game.id,
        round=game.round,
        picked_winner_id=picked_winner_id,
        predicted_margin=predicted_margin,
        picked_at=now or datetime.now(timezone.utc),
    )


def validate_playoff_submission(
    series: Series,
    member: Member,
    entries: Iterable[tuple[str, str, int]],
    now: Optional[datetime] = None,
) -> PlayoffPickOutcome:
    """Check ``(game_id, winner, margin)`` entries and return the member's merged picks.

    Entries are checked in bracket order so a winner predicted earlier in the
    same submission can fill a later placeholder game.
    """
    games = series.playoff_games
    games_by_id = {g.id: g for g in games}
    allowed_rounds = STAGE_ROUNDS[series.playoff_stage]

    entries = list(entries)
    for game_id, _, _ in entries:
        if game_id not in games_by_id:
            return UnknownGameError(f"Game {game_id} is not in this bracket")

    merged = {p.game_id: p for p in member.playoff_picks}
    ordered = sorted(
        entries,
        key=lambda e: (ROUND_ORDER.index(games_by_id[e[0]].round), games_by_id[e[0]].game_number),
    )
    for game_id, winner_id, margin in ordered:
        game = games_by_id[game_id]
        if game.round not in allowed_rounds:
            return WeekNotOpenError(
                f"{ROUND_DISPLAY_NAMES[game.round]} picks are not open in {series.playoff_stage.replace('_', ' ')}"
            )
        predicted = {gid: p.picked_winner_id for gid, p in merged.items()}
        outcome = validate_playoff_pick(
            game,
            games,
            winner_id.lower(),
            margin,
            seeding=series.playoff_seeding,
            predicted=predicted,
            now=now,
        )
        if isinstance(outcome, RuleViolation):
            return outcome
        merged[game_id] = outcome

    return [merged[g.id] for g in sort_games(games) if g.id in merged]


def has_completed_stage_picks(
    picks: Iterable[PlayoffBracketPick],
    stage: PlayoffStage,
    games: Iterable[PlayoffGame],
) -> bool:
    """A stage counts as submitted only when every game in it has a winner and a margin."""
    complete_ids = {p.game_id for p in picks if p.is_complete}
    stage_games = [g for g in games if g.round in STAGE_ROUNDS[stage]]
    return bool(stage_games) and all(g.id in complete_ids for g in stage_games)


# --- Scoring ---

def margin_points(predicted_margin: int, actual_margin: int) -> int:
    return max(0, MAX_MARGIN_POINTS - abs(predicted_margin - actual_margin))


def score_game(
    round: PlayoffRound,
    picked_winner: str,
    actual_winner: str,
    predicted_margin: int,
    actual_margin: int,
) -> GameScore:
    """Winner points by round plus a closeness bonus, all of it only for the right winner."""
    if picked_winner != actual_winner:
        return GameScore()
    winner = WINNER_POINTS[round]
    margin = margin_points(predicted_margin, actual_margin)
    return GameScore(winner_points=winner, margin_points=margin, total=winner + margin)


def score_member(member: Member, games: Iterable[PlayoffGame]) -> list[PlayoffBracketResult]:
    games_by_id = {g.id: g for g in games}
    results = []
    for pick in member.playoff_picks:
        game = games_by_id.get(pick.game_id)
        if game is None or not game.is_complete or game.winner_id is None:
            continue
        actual_margin = game.margin or 0
        score = score_game(game.round, pick.picked_winner_id, game.winner_id, pick.predicted_margin, actual_margin)
        results.append(
            PlayoffBracketResult(
                game_id=game.id,
                picked_winner_id=pick.picked_winner_id,
                predicted_margin=pick.predicted_margin,
                actual_winner_id=game.winner_id,
                actual_margin=actual_margin,
                winner_points=score.winner_points,
                margin_points=score.margin_points,
                total_points=score.total,
            )
        )
    return results


def eliminated_teams(games: Iterable[PlayoffGame]) -> set[str]:
    out = set()
    for game in games:
        if game.is_complete and game.winner_id:
            out.update(t for t in (game.away_team_id, game.home_team_id) if t and t != game.winner_id)
    return out


def possible_points(member: Member, games: Sequence[PlayoffGame]) -> int:
    """Points so far plus the maximum still reachable; picks on knocked-out teams add nothing."""
    games_by_id = {g.id: g for g in games}
    knocked_out = eliminated_teams(games)
    total = sum(r.total_points for r in score_member(member, games))

    for pick in member.playoff_picks:
        game = games_by_id.get(pick.game_id)
        if game is None or game.is_complete:
            continue
        if pick.picked_winner_id in knocked_out:
            continue
        total += WINNER_POINTS[game.round] + MAX_MARGIN_POINTS
    return total


def standings(members: Sequence[Member], games: Sequence[PlayoffGame]) -> list[StandingEntry]:
    """Rank by points, then possible points; equal points share a rank (1, 1, 3)."""
    rows = []
    for member in members:
        total = sum(r.total_points for r in score_member(member, games))
        rows.append((member, total, possible_points(member, games)))
    rows.sort(key=lambda row: (-row[1], -row[2]))

    entries = []
    for index, (member, total, possible) in enumerate(rows):
        if entries and total == entries[-1].total_points:
            rank = entries[-1].rank
        else:
            rank = index + 1
        entries.append(
            StandingEntry(
                member_id=member.id,
                user_id=member.user_id,
                user_name=member.user_name,
                total_points=total,
                possible_points=possible,
                rank=rank,
            )
        )
    return entries


def get_playoff_pool_status(series: Series, user_id: str, entry_number: int = 1) -> PlayoffPoolStatus:
    member = series.member_for_user(user_id, entry_number)
    if member is None:
        return PlayoffPoolStatus(stage=series.playoff_stage)

    games = series.playoff_games
    stage_ids = {g.id for g in games if g.round in STAGE_ROUNDS[series.playoff_stage]}
    results = score_member(member, games)
    rank = next(
        (row.rank for row in standings(series.members, games) if row.member_id == member.id),
        None,
    )

    return PlayoffPoolStatus(
        member=member,
        stage=series.playoff_stage,
        stage_game_count=len(stage_ids),
        stage_picks_saved=sum(1 for p in member.playoff_picks if p.game_id in stage_ids),
        stage_submitted=has_completed_stage_picks(member.playoff_picks, series.playoff_stage, games),
        total_points=sum(r.total_points for r in results),
        possible_points=possible_points(member, games),
        rank=rank,
        results=results,
    )
