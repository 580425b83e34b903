"""Cinéma Moderne: all showings are listed as cards on the home page."""

from __future__ import annotations

from selectolax.parser import HTMLParser, Node

from ..engine.models import ScrapedFilm
from .base import CinemaSource

CARD = "div.cm-Card"
TITLE = "a.cm-Card__title"
LINK = "a[href]"
DIRECTORS = "p.cm-Card__overlay-directors span"
COUNTRIES = "p.cm-Card__overlay-countries span"
YEAR = "p.cm-Card__overlay-year span"
DURATION = "p.cm-Card__overlay-length span"
LANGUAGE = "p.cm-Card__overlay-lang span"


def _text(card: Node, selector: str) -> str | None:
    node = card.css_first(selector)
    if node is None:
        return None
    value = node.text(separator=" ", strip=True)
    return value or None


def _joined(card: Node, selector: str) -> str | None:
    values = [node.text(separator=" ", strip=True) for node in card.css(selector)]
    values = [value for value in values if value]
    return ", ".join(values) if values else None


class CinemaModerneSource(CinemaSource):
    source_id = "cinema_moderne"
    default_base_url = "https://www.cinemamoderne.com/"
    listing_path = "#cinema-en-salle"

    def scrape(self) -> list[ScrapedFilm]:
        html = self.fetch(self.url_for(self.listing_path))
        films = self.parse_listing(html)
        self.logger.info("listing_parsed", films=len(films))
        return films

    def parse_listing(self, html: str) -> list[ScrapedFilm]:
        films: list[ScrapedFilm] = []
        for card in HTMLParser(html).css(CARD):
            film = self._parse_card(card)
            if film.should_be_added():
                films.append(film)
        return films

    def _parse_card(self, card: Node) -> ScrapedFilm:
        link = card.css_first(LINK)
        href = link.attributes.get("href") if link is not None else None
        return ScrapedFilm(
            title=_text(card, TITLE),
            director=_joined(card, DIRECTORS),
            country=_joined(card, COUNTRIES),
            year=_text(card, YEAR),
            duration=_text(card, DURATION),
            language=_text(card, LANGUAGE),
            url=self.url_for(href) if href else None,
        )


__all__ = ["CinemaModerneSource"]
