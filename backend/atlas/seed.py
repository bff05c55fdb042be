"""Sample catalogue of top-ranked BoardGameGeek games, for a fresh database."""

import logging

from sqlalchemy.orm import Session

from atlas.models.game import Game

logger = logging.getLogger(__name__)

SAMPLE_GAMES = [
    {
        "name": "Brass: Birmingham", "year_published": 2018, "bgg_id": 224517, "complexity_rating": 3.9,
        "min_players": 2, "max_players": 4, "play_time_minutes": 120, "publisher": "Roxley",
        "description": "An economic strategy game set in Birmingham during the industrial revolution",
    },
    {
        "name": "Pandemic Legacy: Season 1", "year_published": 2015, "bgg_id": 161936, "complexity_rating": 2.8,
        "min_players": 2, "max_players": 4, "play_time_minutes": 60, "publisher": "Z-Man Games",
        "description": "A cooperative legacy game about saving the world from diseases",
    },
    {
        "name": "Ark Nova", "year_published": 2021, "bgg_id": 342942, "complexity_rating": 3.7,
        "min_players": 1, "max_players": 4, "play_time_minutes": 150, "publisher": "Feuerland Spiele",
        "description": "Plan and design a modern, scientifically managed zoo",
    },
    {
        "name": "Gloomhaven", "year_published": 2017, "bgg_id": 174430, "complexity_rating": 3.9,
        "min_players": 1, "max_players": 4, "play_time_minutes": 120, "publisher": "Cephalofair Games",
        "description": "A game of Euro-inspired tactical combat in a persistent world",
    },
    {
        "name": "Twilight Imperium: Fourth Edition", "year_published": 2017, "bgg_id": 233078,
        "complexity_rating": 4.2, "min_players": 3, "max_players": 6, "play_time_minutes": 480,
        "publisher": "Fantasy Flight Games",
        "description": "Build an empire to claim the throne of the galaxy",
    },
    {
        "name": "Dune: Imperium", "year_published": 2020, "bgg_id": 316554, "complexity_rating": 3.0,
        "min_players": 1, "max_players": 4, "play_time_minutes": 120, "publisher": "Dire Wolf",
        "description": "A game that finds inspiration in elements and characters from the Dune legacy",
    },
    {
        "name": "Terraforming Mars", "year_published": 2016, "bgg_id": 167791, "complexity_rating": 3.2,
        "min_players": 1, "max_players": 5, "play_time_minutes": 120, "publisher": "FryxGames",
        "description": "Compete to transform Mars into a habitable planet",
    },
    {
        "name": "War of the Ring: Second Edition", "year_published": 2011, "bgg_id": 115746,
        "complexity_rating": 4.2, "min_players": 2, "max_players": 4, "play_time_minutes": 180,
        "publisher": "Ares Games",
        "description": "One player takes control of the Free Peoples, the other controls the Shadow Armies",
    },
    {
        "name": "Star Wars: Rebellion", "year_published": 2016, "bgg_id": 187645, "complexity_rating": 3.7,
        "min_players": 2, "max_players": 4, "play_time_minutes": 240, "publisher": "Fantasy Flight Games",
        "description": "Strike at the Death Star, or perfect your plans for galactic domination",
    },
    {
        "name": "Wingspan", "year_published": 2019, "bgg_id": 266192, "complexity_rating": 2.4,
        "min_players": 1, "max_players": 5, "play_time_minutes": 70, "publisher": "Stonemaier Games",
        "description": "Attract a beautiful and diverse collection of birds to your wildlife preserves",
    },
]


def seed_sample_games(db: Session) -> int:
    """Insert the sample games if the games table is empty. Returns how many were added."""
    if db.query(Game.id).first() is not None:
        return 0
    for fields in SAMPLE_GAMES:
        db.add(Game(**fields))
    db.commit()
    logger.info("Seeded %d sample games", len(SAMPLE_GAMES))
    return len(SAMPLE_GAMES)
